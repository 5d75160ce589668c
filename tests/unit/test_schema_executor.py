"""
Tests for schemasync.schema.executor module.
"""

import pytest
from unittest.mock import AsyncMock

from schemasync.client.base import Transaction
from schemasync.exceptions import (
    ConflictError,
    PartialApplyError,
    PlanExecutionError,
    TransportError,
)
from schemasync.schema.executor import AtomicBatchExecutor, StepwiseExecutor
from schemasync.schema.objects import ManagedObjectType
from schemasync.schema.operations import Action, Operation, OperationKind, Phase, Plan


def render(op):
    step = {"op": op.kind.value, "type": op.object_type.value, "name": op.name}
    if op.kind != OperationKind.DELETE:
        step["set"] = {k: v for k, v in op.payload.items() if k != "name"}
    return [step]


def create(object_type, name, phase=Phase.SKELETAL, **payload):
    return Operation(OperationKind.CREATE, object_type, name, {"name": name, **payload}, phase=phase)


def update(object_type, name, phase=Phase.SKELETAL, **payload):
    return Operation(OperationKind.UPDATE, object_type, name, payload, phase=phase)


def delete(object_type, name):
    return Operation(OperationKind.DELETE, object_type, name, phase=Phase.SWEEP)


class TestAtomicBatchExecutor:
    """Test single-transaction submission."""

    @pytest.mark.asyncio
    async def test_empty_plan_submits_nothing(self):
        client = AsyncMock()
        outcomes = await AtomicBatchExecutor(client, render).execute(Plan())

        assert outcomes == []
        client.query.assert_not_called()

    @pytest.mark.asyncio
    async def test_whole_plan_is_one_transaction(self, catalog):
        plan = Plan([
            create(ManagedObjectType.COLLECTION, "users"),
            create(ManagedObjectType.ROLE, "customer", privileges=[]),
            update(ManagedObjectType.ROLE, "customer", Phase.RELATIONAL,
                   privileges=[{"resource": "users", "actions": {"read": True}}]),
        ])

        outcomes = await AtomicBatchExecutor(catalog, render).execute(plan)

        assert len(catalog.transactions) == 1
        assert len(catalog.transactions[0].steps) == 3
        assert [o.action for o in outcomes] == [Action.CREATED, Action.CREATED, Action.UPDATED]
        assert catalog.get(ManagedObjectType.ROLE, "customer")["privileges"][0]["resource"] == "users"

    @pytest.mark.asyncio
    async def test_rejection_leaves_catalog_unchanged(self, catalog):
        catalog.seed(ManagedObjectType.COLLECTION, "taken", data={})
        plan = Plan([
            create(ManagedObjectType.COLLECTION, "fresh"),
            create(ManagedObjectType.COLLECTION, "taken"),
        ])

        with pytest.raises(ConflictError) as exc_info:
            await AtomicBatchExecutor(catalog, render).execute(plan)

        assert exc_info.value.object_type == "Collection"
        assert exc_info.value.name == "taken"
        assert exc_info.value.step_index == 1
        assert catalog.get(ManagedObjectType.COLLECTION, "fresh") is None

    @pytest.mark.asyncio
    async def test_step_index_maps_through_multi_step_operations(self):
        def two_steps(op):
            return render(op) * 2

        client = AsyncMock()
        client.query.side_effect = ConflictError("boom", code="bad", step_index=3)
        plan = Plan([
            create(ManagedObjectType.COLLECTION, "a"),
            create(ManagedObjectType.COLLECTION, "b"),
        ])

        with pytest.raises(ConflictError) as exc_info:
            await AtomicBatchExecutor(client, two_steps).execute(plan)

        assert exc_info.value.name == "b"

    @pytest.mark.asyncio
    async def test_record_count_mismatch(self):
        client = AsyncMock()
        client.query.return_value = []

        with pytest.raises(PlanExecutionError, match="0 records for 1 steps"):
            await AtomicBatchExecutor(client, render).execute(
                Plan([create(ManagedObjectType.COLLECTION, "a")])
            )

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self):
        client = AsyncMock()
        client.query.side_effect = TransportError("down", status_code=503)

        with pytest.raises(TransportError):
            await AtomicBatchExecutor(client, render).execute(
                Plan([create(ManagedObjectType.COLLECTION, "a")])
            )

    @pytest.mark.asyncio
    async def test_submits_transaction_operation(self):
        client = AsyncMock()
        client.query.return_value = [{"type": "Collection", "name": "a", "action": "created"}]

        await AtomicBatchExecutor(client, render).execute(
            Plan([create(ManagedObjectType.COLLECTION, "a")])
        )

        submitted = client.query.call_args[0][0]
        assert isinstance(submitted, Transaction)
        assert submitted.steps == [{"op": "create", "type": "Collection", "name": "a", "set": {}}]


class TestStepwiseExecutor:
    """Test per-batch submission."""

    def full_plan(self):
        return Plan([
            create(ManagedObjectType.COLLECTION, "users"),
            create(ManagedObjectType.INDEX, "users_by_email"),
            create(ManagedObjectType.ROLE, "customer"),
            create(ManagedObjectType.FUNCTION, "register"),
            update(ManagedObjectType.ROLE, "customer", Phase.RELATIONAL, privileges=[]),
            delete(ManagedObjectType.COLLECTION, "old"),
        ])

    def test_batch_order(self):
        executor = StepwiseExecutor(AsyncMock(), render)

        labels = [label for label, _ in executor.batches(self.full_plan())]

        assert labels == [
            "collections", "indexes", "roles", "functions", "roles-relational", "deletions",
        ]

    @pytest.mark.asyncio
    async def test_one_transaction_per_batch(self, catalog):
        catalog.seed(ManagedObjectType.COLLECTION, "old", data={})

        outcomes = await StepwiseExecutor(catalog, render).execute(self.full_plan())

        assert [t.label for t in catalog.transactions] == [
            "collections", "indexes", "roles", "functions", "roles-relational", "deletions",
        ]
        assert len(outcomes) == 6
        assert outcomes[-1].action == Action.DELETED

    @pytest.mark.asyncio
    async def test_failure_lists_applied_batches(self, catalog):
        catalog.reject = lambda step: step["type"] == "Function"

        with pytest.raises(PartialApplyError) as exc_info:
            await StepwiseExecutor(catalog, render).execute(self.full_plan())

        error = exc_info.value
        assert error.applied_steps == ["collections", "indexes", "roles"]
        assert error.failed_step == "functions"
        assert error.object_type == "Function"
        assert error.name == "register"
        assert isinstance(error.cause, ConflictError)
        # Earlier batches stay applied
        assert catalog.get(ManagedObjectType.COLLECTION, "users") is not None
        assert catalog.get(ManagedObjectType.FUNCTION, "register") is None
