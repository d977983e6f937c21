"""Ordering for issue severities."""

from __future__ import annotations

from typing import Iterable, Optional

from src.analysis.models import IssueSeverity

SEVERITY_RANK = {
    IssueSeverity.LOW: 1,
    IssueSeverity.MEDIUM: 2,
    IssueSeverity.HIGH: 3,
    IssueSeverity.CRITICAL: 4,
}


def max_issue_severity(
    severities: Iterable[IssueSeverity], default: Optional[IssueSeverity] = None
) -> Optional[IssueSeverity]:
    """Highest severity in ``severities``; ``default`` when empty."""
    highest = default
    for severity in severities:
        if highest is None or SEVERITY_RANK[severity] > SEVERITY_RANK[highest]:
            highest = severity
    return highest
