from __future__ import annotations

import re

from deep_research.research_core.summarize.service import Asker
from deep_research.services.prompt_store import render_prompt

# "1." "1)" "(1)" ordinals and "-" "*" "•" bullets, optionally inside markdown emphasis ("**1. ...**")
LIST_MARKER = re.compile(r"^\s*([*_]*)(?:\(\d+\)|\d+[.)]|[-*•])([*_]*)\s+")
WRAPPED_ITEM = re.compile(r"^([*_]+)(.+?)\1$")


def _list_item(line: str, marker: re.Match[str]) -> str:
    item = line[marker.end():].strip()
    opening = marker.group(1)
    if opening and not marker.group(2) and item.endswith(opening):
        item = item[: -len(opening)].strip()
    wrapped = WRAPPED_ITEM.match(item)
    return wrapped.group(2).strip() if wrapped else item


def parse_numbered_list(text: str) -> list[str]:
    """Items of a model-written list, in order.

    When any line carries a list marker, unmarked lines (preambles, closing
    remarks) are dropped; otherwise every non-blank line is an item.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    marked: list[str] = []
    for line in lines:
        marker = LIST_MARKER.match(line)
        if marker:
            marked.append(_list_item(line, marker))
    if marked:
        return [item for item in marked if item]
    return lines


class Planner:
    """Decompose a topic into focused sub-questions."""

    def __init__(self, llm: Asker):
        self.llm = llm

    async def decompose(self, topic: str) -> list[str]:
        reply = await self.llm.ask(render_prompt("planner.decompose", topic=topic), caller="planner")
        return parse_numbered_list(reply)
