from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class Finding:
    """One piece of evidence: a summarized source answering a sub-question."""

    query: str
    source: str
    content: str
    score: float
    timestamp: str = field(default_factory=_utc_now_iso)
    id: int | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"Finding score must be within [0, 1], got {self.score}")

    def with_id(self, finding_id: int | None) -> "Finding":
        return replace(self, id=finding_id)
