from __future__ import annotations

from typing import Any

from deep_research.models.events import EventType, ResearchEvent
from deep_research.models.finding import Finding


def plan_created(topic: str, subtasks: list[str]) -> ResearchEvent:
    return ResearchEvent(
        event=EventType.PLAN_CREATED,
        data={"topic": topic, "subtasks": list(subtasks)},
    )


def subtask_started(subtask: str, pages: int, *, depth: int = 0) -> ResearchEvent:
    return ResearchEvent(
        event=EventType.SUBTASK_STARTED,
        data={"subtask": subtask, "pages": pages, "depth": depth},
    )


def subtask_skipped(subtask: str, reason: str) -> ResearchEvent:
    return ResearchEvent(
        event=EventType.SUBTASK_SKIPPED,
        data={"subtask": subtask, "reason": reason},
    )


def page_progress(current: int, total: int, *, label: str, url: str) -> ResearchEvent:
    return ResearchEvent(
        event=EventType.PAGE_PROGRESS,
        data={"current": current, "total": total, "label": label, "url": url},
    )


def page_failed(url: str, message: str) -> ResearchEvent:
    return ResearchEvent(event=EventType.PAGE_FAILED, data={"url": url, "message": message})


def chunk_progress(current: int, total: int, *, url: str) -> ResearchEvent:
    return ResearchEvent(
        event=EventType.CHUNK_PROGRESS,
        data={"current": current, "total": total, "label": "Summarizing chunks", "url": url},
    )


def document_truncated(url: str, total_chunks: int, kept_chunks: int) -> ResearchEvent:
    return ResearchEvent(
        event=EventType.DOCUMENT_TRUNCATED,
        data={"url": url, "total_chunks": total_chunks, "kept_chunks": kept_chunks},
    )


def finding_recorded(finding: Finding) -> ResearchEvent:
    return ResearchEvent(
        event=EventType.FINDING_RECORDED,
        data={
            "id": finding.id,
            "query": finding.query,
            "source": finding.source,
            "score": finding.score,
            "persisted": finding.id is not None,
        },
    )


def synthesis_started(sources_count: int, *, depth: int) -> ResearchEvent:
    return ResearchEvent(
        event=EventType.SYNTHESIS_STARTED,
        data={"sources_count": sources_count, "depth": depth},
    )


def synthesis_completed(report_chars: int, *, depth: int) -> ResearchEvent:
    return ResearchEvent(
        event=EventType.SYNTHESIS_COMPLETED,
        data={"report_chars": report_chars, "depth": depth},
    )


def refinement_started(depth: int, subtasks: list[str]) -> ResearchEvent:
    return ResearchEvent(
        event=EventType.REFINEMENT_STARTED,
        data={"depth": depth, "subtasks": list(subtasks)},
    )


def refinement_stopped(depth: int, reason: str) -> ResearchEvent:
    return ResearchEvent(
        event=EventType.REFINEMENT_STOPPED,
        data={"depth": depth, "reason": reason},
    )


def research_complete(
    report: str,
    findings: tuple[Finding, ...],
    *,
    depth: int,
    runtime_ms: int | None = None,
) -> ResearchEvent:
    data: dict[str, Any] = {
        "report": report,
        "sources": [{"url": f.source, "score": f.score, "id": f.id} for f in findings],
        "depth": depth,
    }
    if runtime_ms is not None:
        data["runtime_ms"] = runtime_ms
    return ResearchEvent(event=EventType.RESEARCH_COMPLETE, data=data)


def error(message: str, stage: str | None = None) -> ResearchEvent:
    data: dict[str, Any] = {"message": message}
    if stage:
        data["stage"] = stage
    return ResearchEvent(event=EventType.ERROR, data=data)
