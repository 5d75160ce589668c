"""
Remote catalog client for schemasync.
"""

from .base import ListObjects, Page, RemoteClient, Transaction
from .http import HttpCatalogClient

__all__ = [
    "RemoteClient",
    "ListObjects",
    "Transaction",
    "Page",
    "HttpCatalogClient",
]
