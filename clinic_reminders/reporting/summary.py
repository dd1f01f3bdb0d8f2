"""Summary generation for reminder batches."""

from __future__ import annotations

from collections import Counter
from typing import Any


def compute_summary(records: list[dict[str, Any]], total_appointments: int) -> dict[str, Any]:
    """Compute aggregate stats from dispatch records."""
    status_counts = Counter(record.get("status") for record in records)
    failed_reasons = Counter(
        record.get("reason", "unknown")
        for record in records
        if record.get("status") == "failed"
    )

    return {
        "total_appointments": total_appointments,
        "attempted_sends": sum(1 for record in records if record.get("attempted")),
        "successful_sends": status_counts.get("sent", 0),
        "failed": {
            "total": status_counts.get("failed", 0),
            "reasons": dict(failed_reasons),
        },
    }
