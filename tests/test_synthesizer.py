from __future__ import annotations

import pytest

from deep_research.agents.synthesizer import Synthesizer, format_findings
from deep_research.models.finding import Finding


def test_findings_are_rendered_with_source_and_two_decimal_score():
    findings = [
        Finding(query="q1", source="https://arxiv.org/abs/1", content="First summary.", score=0.9),
        Finding(query="q2", source="https://example.com", content="Second summary.", score=0.5049),
    ]
    assert format_findings(findings) == (
        "Source: https://arxiv.org/abs/1 (score=0.90)\nFirst summary."
        "\n\n"
        "Source: https://example.com (score=0.50)\nSecond summary."
    )


@pytest.mark.asyncio
async def test_combine_requests_structured_report():
    prompts: list[str] = []

    class LLM:
        async def ask(self, prompt: str, *, caller: str = "ask") -> str:
            prompts.append(prompt)
            return "REPORT"

    finding = Finding(query="q", source="https://mit.edu/sleep", content="Naps help.", score=0.85)
    report = await Synthesizer(LLM()).combine([finding], "Effects of sleep on memory")

    assert report == "REPORT"
    prompt = prompts[0]
    assert "Source: https://mit.edu/sleep (score=0.85)\nNaps help." in prompt
    assert '"Effects of sleep on memory"' in prompt
    for section in ("Introduction", "Key Findings", "Contrasting Perspectives", "Conclusion"):
        assert f"- {section}" in prompt
