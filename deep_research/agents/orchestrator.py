from __future__ import annotations

import asyncio
import contextlib
import time
from typing import AsyncGenerator, Awaitable, Callable

from loguru import logger

from deep_research.agents.planner import Planner, parse_numbered_list
from deep_research.agents.synthesizer import Synthesizer
from deep_research.config import RunConfig
from deep_research.errors import FetchFailure
from deep_research.llm_client import ChatClient
from deep_research.models.events import EventSink, EventType, ResearchEvent
from deep_research.models.finding import Finding
from deep_research.research_core.fetch.service import PageFetcher
from deep_research.research_core.reliability.scorer import ReliabilityScorer
from deep_research.research_core.summarize.service import DocumentSummarizer
from deep_research.services import streaming
from deep_research.services.finding_store import FindingStore
from deep_research.services.logger import log_event, log_research_step
from deep_research.services.prompt_store import render_prompt
from deep_research.tools import search_provider

SearchFn = Callable[[str], Awaitable[list[str]]]


def is_no_reply(text: str) -> bool:
    """True for a blank follow-up reply or a bare NO ("no", "NO.", "No!")."""
    stripped = text.strip()
    return not stripped or stripped.rstrip(".!").strip().lower() == "no"


class ResearchOrchestrator:
    """Drives one research run.

    Flow:
      1. Plan: decompose the topic into sub-questions
      2. Gather: search, summarize, score and persist each page
      3. Synthesize a report from every finding so far
      4. Refine: ask for follow-up sub-questions, gather and resynthesize,
         at most ``max_depth`` times
      5. Close the store and return the report

    ``research`` yields progress events as the run advances.
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        llm: ChatClient | None = None,
        search: SearchFn | None = None,
        summarizer: DocumentSummarizer | None = None,
        scorer: ReliabilityScorer | None = None,
        store: FindingStore | None = None,
        planner: Planner | None = None,
        synthesizer: Synthesizer | None = None,
        db_path: str = "research_memory.db",
    ):
        self.config = config
        self._owned_clients: list[ChatClient | PageFetcher] = []
        if llm is None:
            llm = ChatClient.from_config(config)
            self._owned_clients.append(llm)
        self.llm = llm
        self.search = search or search_provider.search
        if summarizer is None:
            fetcher = PageFetcher(timeout=config.fetch_timeout_seconds)
            self._owned_clients.append(fetcher)
            summarizer = DocumentSummarizer(
                self.llm,
                fetcher,
                max_chunks_per_doc=config.max_chunks_per_doc,
            )
        self.summarizer = summarizer
        self.scorer = scorer or ReliabilityScorer(config.source_tiers)
        self.store = store or FindingStore(db_path)
        self.planner = planner or Planner(self.llm)
        self.synthesizer = synthesizer or Synthesizer(self.llm)

    async def research(self, topic: str) -> AsyncGenerator[ResearchEvent, None]:
        queue: asyncio.Queue[ResearchEvent | None] = asyncio.Queue()
        task = asyncio.create_task(self._execute_research(topic, queue.put_nowait))
        task.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
            await task
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def run(self, topic: str) -> str:
        report = ""
        async for event in self.research(topic):
            if event.event == EventType.RESEARCH_COMPLETE:
                report = event.data["report"]
        return report

    async def _execute_research(self, topic: str, emit: EventSink) -> str:
        started = time.monotonic()
        try:
            log_research_step(topic, "planning", "started")
            subtasks = (await self.planner.decompose(topic))[: self.config.max_subtasks]
            log_research_step(topic, "planning", "completed", {"subtasks": subtasks})
            emit(streaming.plan_created(topic, subtasks))

            findings = await self._gather((), subtasks, depth=0, emit=emit)
            report = await self._synthesize(findings, topic, depth=0, emit=emit)

            depth = 0
            while depth < self.config.max_depth:
                follow_up = await self.llm.ask(
                    render_prompt("refinement.follow_up", report=report),
                    caller="refinement",
                )
                if is_no_reply(follow_up):
                    emit(streaming.refinement_stopped(depth, "no_follow_up"))
                    break

                next_subtasks = parse_numbered_list(follow_up)[: self.config.max_subtasks]
                if not next_subtasks:
                    emit(streaming.refinement_stopped(depth, "no_subtasks"))
                    break

                log_research_step(topic, "refining", "started", {"depth": depth + 1, "subtasks": next_subtasks})
                emit(streaming.refinement_started(depth + 1, next_subtasks))
                updated = await self._gather(findings, next_subtasks, depth=depth + 1, emit=emit)
                if len(updated) == len(findings):
                    emit(streaming.refinement_stopped(depth, "no_new_findings"))
                    break

                findings = updated
                report = await self._synthesize(findings, topic, depth=depth + 1, emit=emit)
                depth += 1
            else:
                emit(streaming.refinement_stopped(depth, "max_depth"))

            runtime_ms = int((time.monotonic() - started) * 1000)
            log_research_step(
                topic,
                "done",
                "completed",
                {"depth": depth, "findings": len(findings), "runtime_ms": runtime_ms},
            )
            emit(streaming.research_complete(report, findings, depth=depth, runtime_ms=runtime_ms))
            return report
        except Exception as exc:
            logger.exception(f"Research failed for {topic!r}: {exc}")
            emit(streaming.error(str(exc), stage=type(exc).__name__))
            raise
        finally:
            await self.store.close()
            for client in self._owned_clients:
                await client.aclose()

    async def _gather(
        self,
        findings: tuple[Finding, ...],
        subtasks: list[str],
        *,
        depth: int,
        emit: EventSink,
    ) -> tuple[Finding, ...]:
        """One gathering round: the input findings followed by every new one, in order."""
        gathered: list[Finding] = []
        for subtask in subtasks:
            pages = (await self.search(subtask))[: self.config.max_pages_per_task]
            if not pages:
                log_event("subtask_skipped", "No search results", subtask=subtask, depth=depth)
                emit(streaming.subtask_skipped(subtask, "no_search_results"))
                continue

            emit(streaming.subtask_started(subtask, len(pages), depth=depth))
            label = f"Fetching pages for follow-up: {subtask}" if depth else f"Fetching pages for: {subtask}"
            for index, url in enumerate(pages, start=1):
                emit(streaming.page_progress(index, len(pages), label=label, url=url))
                try:
                    summary = await self.summarizer.summarize(url, emit)
                except FetchFailure as exc:
                    if not self.config.skip_failed_pages:
                        raise
                    logger.warning(f"Skipping {url}: {exc}")
                    emit(streaming.page_failed(url, str(exc)))
                    continue

                finding = Finding(
                    query=subtask,
                    source=url,
                    content=summary,
                    score=self.scorer.score(url, len(summary)),
                )
                finding = finding.with_id(await self.store.insert(finding))
                gathered.append(finding)
                emit(streaming.finding_recorded(finding))

        return findings + tuple(gathered)

    async def _synthesize(
        self,
        findings: tuple[Finding, ...],
        topic: str,
        *,
        depth: int,
        emit: EventSink,
    ) -> str:
        emit(streaming.synthesis_started(len(findings), depth=depth))
        report = await self.synthesizer.combine(findings, topic)
        emit(streaming.synthesis_completed(len(report), depth=depth))
        return report
