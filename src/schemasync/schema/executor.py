"""
Plan executors for schemasync.

The atomic executor submits a whole plan as one transaction. The stepwise
executor submits one transaction per resource-type batch in a fixed order,
as the legacy catalog requires.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Tuple

from .objects import ManagedObjectType
from .operations import Action, Operation, Outcome, Phase, Plan
from ..client.base import RemoteClient, Transaction
from ..exceptions import ConflictError, PartialApplyError, PlanExecutionError, RemoteError


logger = logging.getLogger(__name__)

RenderFn = Callable[[Operation], List[Dict[str, Any]]]


class PlanExecutor(ABC):
    """Submits a plan and resolves one outcome per operation."""

    def __init__(self, client: RemoteClient, render: RenderFn):
        self.client = client
        self.render = render

    @abstractmethod
    async def execute(self, plan: Plan) -> List[Outcome]:
        pass

    def _render_all(self, operations: List[Operation]) -> Tuple[List[Dict[str, Any]], List[int]]:
        """Render operations into steps and remember which operation owns each step."""
        steps: List[Dict[str, Any]] = []
        owners: List[int] = []
        for i, op in enumerate(operations):
            rendered = self.render(op)
            steps.extend(rendered)
            owners.extend([i] * len(rendered))
        return steps, owners

    async def _submit(self, operations: List[Operation], label: str) -> List[Outcome]:
        steps, owners = self._render_all(operations)
        if not steps:
            return []

        logger.debug(f"Submitting {label} with {len(steps)} steps")
        try:
            records = await self.client.query(Transaction(steps=steps, label=label))
        except ConflictError as e:
            if e.step_index is not None and 0 <= e.step_index < len(owners):
                op = operations[owners[e.step_index]]
                raise e.with_context(op.object_type.value, op.name) from e
            raise

        if not isinstance(records, list) or len(records) != len(steps):
            count = len(records) if isinstance(records, list) else 0
            raise PlanExecutionError(
                f"Catalog returned {count} records for {len(steps)} steps of {label}"
            )

        # The last step of an operation carries its outcome
        last_step = {owner: index for index, owner in enumerate(owners)}
        outcomes = []
        for i, op in enumerate(operations):
            record = records[last_step[i]] if i in last_step else {}
            outcomes.append(Outcome(operation=op, action=_record_action(record, op)))
        return outcomes


def _record_action(record: Any, op: Operation) -> Action:
    try:
        return Action(record.get("action"))
    except (AttributeError, ValueError):
        return op.action


class AtomicBatchExecutor(PlanExecutor):
    """Submits the entire plan as one all-or-nothing transaction."""

    async def execute(self, plan: Plan) -> List[Outcome]:
        if plan.is_empty:
            return []
        return await self._submit(list(plan), "plan")


# Stepwise batch order: (label, phase, type or None for any type)
STEPWISE_BATCHES = (
    ("collections", Phase.SKELETAL, ManagedObjectType.COLLECTION),
    ("indexes", Phase.SKELETAL, ManagedObjectType.INDEX),
    ("roles", Phase.SKELETAL, ManagedObjectType.ROLE),
    ("functions", Phase.SKELETAL, ManagedObjectType.FUNCTION),
    ("roles-relational", Phase.RELATIONAL, None),
    ("deletions", Phase.SWEEP, None),
)


class StepwiseExecutor(PlanExecutor):
    """
    Submits one transaction per resource-type batch.

    A rejected batch leaves earlier batches applied; the failure is raised as
    ``PartialApplyError`` naming the committed batches. Nothing is retried.
    """

    def batches(self, plan: Plan) -> List[Tuple[str, List[Operation]]]:
        batches = []
        for label, phase, object_type in STEPWISE_BATCHES:
            operations = [
                op for op in plan.in_phase(phase)
                if object_type is None or op.object_type == object_type
            ]
            if operations:
                batches.append((label, operations))
        return batches

    async def execute(self, plan: Plan) -> List[Outcome]:
        outcomes: List[Outcome] = []
        applied: List[str] = []

        for label, operations in self.batches(plan):
            try:
                outcomes.extend(await self._submit(operations, label))
            except RemoteError as e:
                object_type = getattr(e, "object_type", None)
                name = getattr(e, "name", None)
                raise PartialApplyError(
                    f"Batch {label} failed after applying: {', '.join(applied) or 'none'}",
                    applied_steps=list(applied),
                    failed_step=label,
                    object_type=object_type,
                    name=name,
                    cause=e,
                ) from e
            applied.append(label)
            logger.debug(f"Applied batch {label}")

        return outcomes
