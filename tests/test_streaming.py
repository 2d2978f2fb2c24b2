from __future__ import annotations

from deep_research.models.events import EventType
from deep_research.models.finding import Finding
from deep_research.services import streaming


def test_research_complete_lists_sources_in_order():
    findings = (
        Finding(query="q", source="https://a.org", content="A", score=0.9, id=1),
        Finding(query="q", source="https://b.org", content="B", score=0.5),
    )

    event = streaming.research_complete("REPORT", findings, depth=1, runtime_ms=42)

    assert event.event == EventType.RESEARCH_COMPLETE
    assert event.data == {
        "report": "REPORT",
        "sources": [
            {"url": "https://a.org", "score": 0.9, "id": 1},
            {"url": "https://b.org", "score": 0.5, "id": None},
        ],
        "depth": 1,
        "runtime_ms": 42,
    }


def test_error_event_includes_stage_only_when_given():
    assert streaming.error("bad").data == {"message": "bad"}
    assert streaming.error("bad", stage="planning").data == {"message": "bad", "stage": "planning"}
