"""
Preview and dry-run rendering for schemasync.

A preview run reports what an apply would do without submitting anything.
The logger passed in is expected to mark every line as a preview.
"""

import json
from typing import Any

from .executor import RenderFn
from .operations import Plan, Report
from ..logger import Logger


def _short(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


class PreviewRenderer:
    """Writes the report of an unapplied plan to a logger."""

    def __init__(self, logger: Logger, render: RenderFn, dry_run: bool = False):
        self.logger = logger
        self.render_operation = render
        self.dry_run = dry_run

    def render_report(self, report: Report) -> None:
        for entry in report:
            self.logger.success(entry.message)
            for diff in entry.field_diffs:
                self.logger.info(
                    f"{entry.object_type.value}: {entry.name} {diff.field}: "
                    f"{_short(diff.before)} -> {_short(diff.after)}"
                )

    def render_steps(self, plan: Plan) -> None:
        """Log the wire steps an apply would submit."""
        for op in plan:
            for step in self.render_operation(op):
                self.logger.info(f"{op.phase.value} step: {_short(step)}")

    def render(self, report: Report, plan: Plan) -> None:
        self.render_report(report)
        if self.dry_run:
            self.render_steps(plan)
