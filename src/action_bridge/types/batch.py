from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

__all__ = ["BatchItemResult", "BatchActionResult"]


@dataclass(slots=True)
class BatchItemResult:
    target_id: str
    target_name: str
    success: bool
    error: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchActionResult:
    """Aggregated outcome of one batch run; partial failure is data, not an exception."""

    items: list[BatchItemResult] = field(default_factory=list)
    summary: str = ""

    @property
    def total_processed(self) -> int:
        return len(self.items)

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.items if item.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for item in self.items if not item.success)

    @property
    def success(self) -> bool:
        # At least one delivered target counts as a successful run.
        return self.success_count > 0

    @property
    def all_succeeded(self) -> bool:
        return self.failed_count == 0

    def record(self, item: BatchItemResult) -> None:
        self.items.append(item)

    def as_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "totalProcessed": self.total_processed,
            "successCount": self.success_count,
            "failedCount": self.failed_count,
            "results": [asdict(item) for item in self.items],
            "summary": self.summary,
        }
