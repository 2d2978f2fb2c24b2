from __future__ import annotations

from typing import Iterable

from deep_research.models.finding import Finding
from deep_research.research_core.summarize.service import Asker
from deep_research.services.prompt_store import render_prompt


def format_findings(findings: Iterable[Finding]) -> str:
    return "\n\n".join(
        f"Source: {finding.source} (score={finding.score:.2f})\n{finding.content}"
        for finding in findings
    )


class Synthesizer:
    """Turn the accumulated findings into one structured, cited report."""

    def __init__(self, llm: Asker):
        self.llm = llm

    async def combine(self, findings: Iterable[Finding], topic: str) -> str:
        prompt = render_prompt("synthesizer.report", findings=format_findings(findings), topic=topic)
        return await self.llm.ask(prompt, caller="synthesizer")
