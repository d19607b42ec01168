"""Outcome of a batch job that keeps going past individual item failures."""

from dataclasses import dataclass, field
from typing import Dict, Any


@dataclass
class BatchReport:
    """
    Counts for one batch run.

    ``failures`` maps the failing item's identifier to its error text; a run
    with failures still completes and reports them here.
    """
    name: str
    processed: int = 0
    skipped: int = 0
    failures: Dict[str, str] = field(default_factory=dict)

    def record_failure(self, item_id, error: Exception):
        self.failures[str(item_id)] = str(error) or error.__class__.__name__

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def partial_failure(self) -> bool:
        return bool(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "processed": self.processed,
            "skipped": self.skipped,
            "failed": self.failed,
            "failures": dict(self.failures),
        }
