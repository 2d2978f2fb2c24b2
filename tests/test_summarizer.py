from __future__ import annotations

import pytest

from deep_research.errors import FetchFailure
from deep_research.models.events import EventType, ResearchEvent
from deep_research.research_core.summarize.service import DocumentSummarizer


class FakeFetcher:
    def __init__(self, text: str | None = None, error: Exception | None = None):
        self.text = text
        self.error = error
        self.urls: list[str] = []

    async def fetch_text(self, url: str) -> str:
        self.urls.append(url)
        if self.error:
            raise self.error
        return self.text or ""


class RecordingLLM:
    def __init__(self):
        self.prompts: list[str] = []
        self.callers: list[str] = []

    async def ask(self, prompt: str, *, caller: str = "ask") -> str:
        self.prompts.append(prompt)
        self.callers.append(caller)
        return f"summary {len(self.prompts)}"


@pytest.mark.asyncio
async def test_short_article_is_summarized_in_one_call():
    llm = RecordingLLM()
    summarizer = DocumentSummarizer(llm, FakeFetcher("Sleep helps memory."))

    result = await summarizer.summarize("https://example.com/a")

    assert result == "summary 1"
    assert llm.prompts == ["Summarize the following article:\nSleep helps memory."]


@pytest.mark.asyncio
async def test_long_article_is_chunked_then_combined():
    llm = RecordingLLM()
    events: list[ResearchEvent] = []
    summarizer = DocumentSummarizer(llm, FakeFetcher("x" * 20_000))

    result = await summarizer.summarize("https://example.com/long", events.append)

    assert len(llm.prompts) == 4
    assert llm.callers == ["summarize_chunk", "summarize_chunk", "summarize_chunk", "summarize_combine"]
    assert "(chunk 1 of 3)" in llm.prompts[0]
    assert "(chunk 3 of 3)" in llm.prompts[2]
    combine_prompt = llm.prompts[3]
    assert "Chunk 1 summary:\nsummary 1\n\nChunk 2 summary:\nsummary 2\n\nChunk 3 summary:\nsummary 3" in combine_prompt
    assert result == "summary 4"

    progress = [e.data for e in events if e.event == EventType.CHUNK_PROGRESS]
    assert [(p["current"], p["total"]) for p in progress] == [(1, 3), (2, 3), (3, 3)]
    assert all(p["label"] == "Summarizing chunks" for p in progress)


@pytest.mark.asyncio
async def test_chunks_beyond_cap_are_dropped_and_reported():
    llm = RecordingLLM()
    events: list[ResearchEvent] = []
    summarizer = DocumentSummarizer(llm, FakeFetcher("y" * 20_000), max_chunks_per_doc=2)

    await summarizer.summarize("https://example.com/long", events.append)

    assert llm.callers.count("summarize_chunk") == 2
    truncated = [e for e in events if e.event == EventType.DOCUMENT_TRUNCATED]
    assert len(truncated) == 1
    assert truncated[0].data == {"url": "https://example.com/long", "total_chunks": 3, "kept_chunks": 2}


@pytest.mark.asyncio
async def test_fetch_failures_propagate():
    failure = FetchFailure("https://example.com/x", "Failed to fetch URL: boom")
    llm = RecordingLLM()
    summarizer = DocumentSummarizer(llm, FakeFetcher(error=failure))

    with pytest.raises(FetchFailure):
        await summarizer.summarize("https://example.com/x")
    assert llm.prompts == []
