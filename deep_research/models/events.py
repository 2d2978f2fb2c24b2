from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class EventType(str, Enum):
    PLAN_CREATED = "plan_created"
    SUBTASK_STARTED = "subtask_started"
    SUBTASK_SKIPPED = "subtask_skipped"
    PAGE_PROGRESS = "page_progress"
    PAGE_FAILED = "page_failed"
    CHUNK_PROGRESS = "chunk_progress"
    DOCUMENT_TRUNCATED = "document_truncated"
    FINDING_RECORDED = "finding_recorded"
    SYNTHESIS_STARTED = "synthesis_started"
    SYNTHESIS_COMPLETED = "synthesis_completed"
    REFINEMENT_STARTED = "refinement_started"
    REFINEMENT_STOPPED = "refinement_stopped"
    RESEARCH_COMPLETE = "research_complete"
    ERROR = "error"


@dataclass
class ResearchEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)


EventSink = Callable[[ResearchEvent], None]
