"""
Tests for schemasync.client.base module.
"""

import pytest

from schemasync.client.base import Page
from schemasync.exceptions import TransportError


class TestPage:
    """Test listing page parsing."""

    def test_from_result(self):
        page = Page.from_result({"data": [{"name": "users"}], "after": "users"})

        assert page.data == [{"name": "users"}]
        assert page.after == "users"

    def test_empty_result_is_last_page(self):
        page = Page.from_result({"data": None})

        assert page.data == []
        assert page.after is None

    def test_result_must_be_a_mapping(self):
        with pytest.raises(TransportError, match="expected a mapping, got list"):
            Page.from_result([{"name": "users"}])

    @pytest.mark.parametrize("data", [{"name": "users"}, ["users"]])
    def test_data_must_be_a_list_of_records(self, data):
        with pytest.raises(TransportError, match="`data` must be a list of records"):
            Page.from_result({"data": data})
