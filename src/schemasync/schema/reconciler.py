"""
Schema reconciliation core logic for schemasync.

Coordinates tagging, diffing, planning, the orphan sweep and execution for
one catalog backend, and reports every outcome to the run logger.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .diff import DiffResult, ObjectDiffEngine
from .executor import PlanExecutor
from .objects import DesiredObject, ManagedObjectType, ObjectKey, ObservedObject, type_rank
from .operations import (
    Action,
    Operation,
    Outcome,
    Plan,
    Report,
    ReportEntry,
    RunMode,
)
from .planner import DependencyPlanner
from .preview import PreviewRenderer
from .sweep import OrphanSweeper
from ..backends.base import BackendAdapter
from ..client.base import ListObjects, Page, RemoteClient
from ..exceptions import ConflictError, PlanExecutionError, SchemaSyncError
from ..logger import Logger, PreviewLogger


logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Result of one deploy or remove run against one backend."""

    label: str
    mode: RunMode
    report: Report
    plan: Plan = field(default_factory=Plan)
    outcomes: List[Outcome] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return not self.report.is_empty


class SchemaReconciler:
    """
    Core reconciliation engine for one catalog backend.

    Observed state is listed fresh on every run, type by type and page by
    page, and only objects carrying this backend's owner tag take part.
    """

    def __init__(
        self,
        client: RemoteClient,
        backend: BackendAdapter,
        logger: Logger,
        mode: RunMode = RunMode.APPLY,
    ):
        self.client = client
        self.backend = backend
        self.mode = mode
        self.logger = logger if mode.is_mutating else PreviewLogger(logger)

        self.diff_engine = ObjectDiffEngine(backend.specs)
        self.planner = DependencyPlanner(backend.specs, backend.type_order)
        self.sweeper = OrphanSweeper(backend.tagger, backend.type_order)

    async def deploy(self) -> RunResult:
        """Converge the catalog to the backend's desired objects."""
        return await self._run(self.backend.desired_objects, "update")

    async def remove(self) -> RunResult:
        """Delete every owned object whose retention policy allows it."""
        return await self._run(list, "remove")

    async def fetch_observed(self) -> Dict[ObjectKey, ObservedObject]:
        """List every owned object of every managed type."""
        semaphore = asyncio.Semaphore(self.backend.concurrency)
        listings = await asyncio.gather(
            *(self._list_type(t, semaphore) for t in self.backend.managed_types),
            return_exceptions=True,
        )
        # Every sibling listing has settled; surface the first failure
        for listing in listings:
            if isinstance(listing, BaseException):
                raise listing

        observed: Dict[ObjectKey, ObservedObject] = {}
        for objects in listings:
            for obj in objects:
                observed[obj.key] = obj
        return observed

    async def _list_type(
        self, object_type: ManagedObjectType, semaphore: asyncio.Semaphore
    ) -> List[ObservedObject]:
        owned: List[ObservedObject] = []
        skipped = 0
        after: Optional[str] = None
        pages = 0

        while True:
            async with semaphore:
                result = await self.client.query(
                    ListObjects(object_type, after=after, size=self.backend.page_size)
                )
            page = Page.from_result(result)
            pages += 1

            for record in page.data:
                obj = self.backend.observed_from_record(object_type, record)
                if obj is None:
                    continue
                if self.backend.tagger.is_owned(obj):
                    owned.append(obj)
                else:
                    skipped += 1

            if not page.after:
                break
            after = page.after

        logger.debug(
            f"Listed {len(owned)} owned {object_type.plural} over {pages} pages "
            f"({skipped} not owned)"
        )
        return owned

    def build_report(self, diffs: List[DiffResult], deletions: List[Operation]) -> Report:
        """
        Order report entries by the backend's report order, config order
        within a type, with deletions last.
        """
        rank = type_rank(self.backend.report_order)
        changed = sorted(
            (d for d in diffs if not d.is_noop),
            key=lambda d: rank.get(d.object_type, len(rank)),
        )

        report = Report()
        for diff in changed:
            action = Action.CREATED if diff.observed is None else Action.UPDATED
            report.add(ReportEntry(diff.object_type, diff.name, action, diff.field_diffs))
        for op in deletions:
            report.add(ReportEntry(op.object_type, op.name, Action.DELETED))
        return report

    def apply_outcomes(self, report: Report, outcomes: List[Outcome]) -> None:
        """
        Replace reported actions with what the catalog says it did.

        An object's first outcome wins, so a create followed by its
        relational update is still reported as created.
        """
        actions: Dict[ObjectKey, Action] = {}
        for outcome in outcomes:
            actions.setdefault(outcome.operation.key, outcome.action)
        for entry in report:
            entry.action = actions.get((entry.object_type, entry.name), entry.action)

    def _tag(self, desired: List[DesiredObject]) -> List[DesiredObject]:
        return [
            DesiredObject(d.object_type, d.name, self.backend.tagger.tag(d.attributes))
            for d in desired
        ]

    def _describe_error(self, error: SchemaSyncError) -> str:
        message = str(error.message)
        if isinstance(error, ConflictError) and error.code:
            message = f"{error.code}: {message}"
        object_type = getattr(error, "object_type", None)
        name = getattr(error, "name", None)
        if object_type and name:
            message = f"{object_type} {name}: {message}"
        if isinstance(error, ConflictError) and error.summary:
            message += f"\n---\n{error.summary}"
        if isinstance(error, PlanExecutionError) and error.cause is not None:
            message += f" (caused by: {error.cause})"
        return message

    async def _run(
        self, desired: Callable[[], List[DesiredObject]], verb: str
    ) -> RunResult:
        label = self.backend.label
        self.logger.info(f"{label} schema {verb} in progress...")

        try:
            tagged = self._tag(desired())
            observed = await self.fetch_observed()

            diffs = self.diff_engine.classify_all(tagged, observed)
            plan = self.planner.plan(diffs)
            deletions = self.sweeper.sweep({d.key for d in tagged}, observed.values())
            plan.extend(deletions)
            report = self.build_report(diffs, deletions)

            outcomes: List[Outcome] = []
            if self.mode.is_mutating:
                executor: PlanExecutor = self.backend.create_executor(self.client)
                outcomes = await executor.execute(plan)
                self.apply_outcomes(report, outcomes)
                for entry in report:
                    self.logger.success(entry.message)
            else:
                renderer = PreviewRenderer(
                    self.logger,
                    self.backend.render_operation,
                    dry_run=self.mode == RunMode.DRY_RUN,
                )
                renderer.render(report, plan)

        except SchemaSyncError as e:
            self.logger.error(self._describe_error(e))
            raise

        if report.is_empty:
            if verb == "remove":
                self.logger.success(f"{label} schema has nothing to remove")
            else:
                self.logger.success(f"{label} schema up to date")

        self.logger.info(f"{label} schema {verb} complete")
        logger.info(
            f"{label} {verb} finished in {self.mode.value} mode: "
            f"{len(report)} changes, {len(plan)} operations"
        )
        return RunResult(label=label, mode=self.mode, report=report, plan=plan, outcomes=outcomes)
