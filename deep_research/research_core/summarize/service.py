from __future__ import annotations

from typing import Protocol

from loguru import logger

from deep_research.models.events import EventSink
from deep_research.services import streaming
from deep_research.services.prompt_store import render_prompt

MAX_ARTICLE_CHARS = 8000
CHUNK_OVERLAP = 400


class Asker(Protocol):
    async def ask(self, prompt: str, *, caller: str = ...) -> str: ...


class TextFetcher(Protocol):
    async def fetch_text(self, url: str) -> str: ...


def split_into_windows(text: str, size: int = MAX_ARTICLE_CHARS, overlap: int = CHUNK_OVERLAP) -> list[str]:
    """Overlapping fixed-size windows covering ``text``; the last one ends at ``len(text)``."""
    if size < 1:
        raise ValueError(f"Window size must be positive, got {size}")
    windows: list[str] = []
    start = 0
    length = len(text)
    while start < length:
        end = min(start + size, length)
        windows.append(text[start:end])
        if end == length:
            break
        start = max(end - overlap, start + 1)
    return windows


def cap_windows(windows: list[str], limit: int) -> tuple[list[str], bool]:
    if limit < 1 or len(windows) <= limit:
        return windows, False
    return windows[:limit], True


class DocumentSummarizer:
    """Summarize a URL's text, chunking long documents and combining the chunk summaries."""

    def __init__(
        self,
        llm: Asker,
        fetcher: TextFetcher,
        *,
        max_chunks_per_doc: int = 12,
        chunk_size: int = MAX_ARTICLE_CHARS,
        overlap: int = CHUNK_OVERLAP,
    ):
        self.llm = llm
        self.fetcher = fetcher
        self.max_chunks_per_doc = max_chunks_per_doc
        self.chunk_size = chunk_size
        self.overlap = overlap

    async def summarize(self, url: str, emit: EventSink | None = None) -> str:
        text = await self.fetcher.fetch_text(url)
        if len(text) <= self.chunk_size:
            return await self.llm.ask(render_prompt("summarize.article", text=text), caller="summarize")
        return await self._chunk_and_summarize(url, text, emit)

    async def _chunk_and_summarize(self, url: str, text: str, emit: EventSink | None) -> str:
        all_windows = split_into_windows(text, self.chunk_size, self.overlap)
        windows, truncated = cap_windows(all_windows, self.max_chunks_per_doc)
        if truncated:
            total = len(all_windows)
            logger.warning(
                f"Document {url} split into {total} chunks; keeping the first {len(windows)}"
            )
            if emit:
                emit(streaming.document_truncated(url, total, len(windows)))

        blocks: list[str] = []
        for index, window in enumerate(windows, start=1):
            if emit:
                emit(streaming.chunk_progress(index, len(windows), url=url))
            prompt = render_prompt("summarize.chunk", index=index, total=len(windows), text=window)
            summary = await self.llm.ask(prompt, caller="summarize_chunk")
            blocks.append(f"Chunk {index} summary:\n{summary}")

        return await self.llm.ask(
            render_prompt("summarize.combine", summaries="\n\n".join(blocks)),
            caller="summarize_combine",
        )
