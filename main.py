"""Deep Research Agent

CLI for running a research topic end to end, or recalling stored findings.
"""

import argparse
import asyncio
import sys
from typing import Callable, TextIO

from deep_research.agents.orchestrator import ResearchOrchestrator
from deep_research.config import RunConfig, settings
from deep_research.errors import ResearchError
from deep_research.models.events import EventType
from deep_research.services.finding_store import FindingStore

NO_INPUT_MESSAGE = (
    "No input provided. Provide a topic as a command-line argument or pipe input into the process."
)


def render_progress_bar(current: int, total: int, label: str = "Progress", width: int = 30) -> str:
    """In-place progress line; ends with a newline once ``current`` reaches ``total``."""
    pct = (current * 100) // total if total > 0 else 100
    filled = (pct * width) // 100
    bar = "#" * filled + "-" * max(width - filled, 0)
    line = f"\r{label}: [{bar}] {pct}% ({current}/{total})"
    if current >= total:
        line += "\n"
    return line


def resolve_topic(
    words: list[str],
    stdin: TextIO | None = None,
    prompt: Callable[[str], str] = input,
) -> str | None:
    """Topic from arguments, else an interactive prompt, else piped stdin."""
    if words:
        return " ".join(words).strip() or None
    stdin = stdin or sys.stdin
    if stdin.isatty():
        try:
            return prompt("Enter your research topic: ").strip() or None
        except EOFError:
            return None
    return stdin.read().strip() or None


async def run_research(topic: str, config: RunConfig, db_path: str) -> str:
    """Run research on the given topic, drawing progress as it goes."""
    orchestrator = ResearchOrchestrator(config, db_path=db_path)
    report = ""

    async for event in orchestrator.research(topic):
        data = event.data

        if event.event == EventType.PLAN_CREATED:
            print(f"[*] Research plan ({len(data['subtasks'])} sub-questions):")
            for i, subtask in enumerate(data["subtasks"], 1):
                print(f"  {i}. {subtask}")

        elif event.event in (EventType.PAGE_PROGRESS, EventType.CHUNK_PROGRESS):
            print(render_progress_bar(data["current"], data["total"], data["label"]), end="", flush=True)

        elif event.event == EventType.PAGE_FAILED:
            print(f"\n[!] Skipped {data['url']}: {data['message']}", file=sys.stderr)

        elif event.event == EventType.REFINEMENT_STARTED:
            print(f"\n[~] Refinement round {data['depth']}: {len(data['subtasks'])} follow-up questions")

        elif event.event == EventType.RESEARCH_COMPLETE:
            report = data["report"]

        elif event.event == EventType.ERROR:
            print(f"\n[!] Error: {data.get('message', 'Unknown error')}", file=sys.stderr)

    return report


async def recall(pattern: str, db_path: str, limit: int = 10) -> None:
    store = FindingStore(db_path)
    try:
        findings = await store.query_by_substring(pattern, limit=limit)
    finally:
        await store.close()

    if not findings:
        print(f"No stored findings match {pattern!r}.")
        return
    for finding in findings:
        print(f"[{finding.id}] {finding.query}")
        print(f"    Source: {finding.source} (score={finding.score:.2f}, {finding.timestamp})")
        print(f"    {finding.content}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deep Research Agent")
    parser.add_argument("topic", nargs="*", help="Research topic (read from a prompt or stdin when omitted)")
    parser.add_argument("--model", "-m", help="Model to use (default: OPENAI_MODEL)")
    parser.add_argument("--max-depth", type=int, help="Refinement rounds (default: MAX_DEPTH)")
    parser.add_argument("--max-subtasks", type=int, help="Sub-questions per round (default: MAX_SUBTASKS)")
    parser.add_argument("--max-pages", type=int, help="Pages per sub-question (default: MAX_PAGES_PER_TASK)")
    parser.add_argument("--db", help="Findings database path (default: FINDINGS_DB_PATH)")
    parser.add_argument("--recall", metavar="PATTERN", help="Print stored findings whose sub-question matches PATTERN")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    db_path = args.db or settings.findings_db_path
    print("Deep Research Agent\n")

    try:
        if args.recall is not None:
            asyncio.run(recall(args.recall, db_path))
            return 0

        topic = resolve_topic(args.topic)
        if not topic:
            print(NO_INPUT_MESSAGE)
            return 0

        config = RunConfig.from_settings(
            model=args.model,
            max_depth=args.max_depth,
            max_subtasks=args.max_subtasks,
            max_pages_per_task=args.max_pages,
        )
        report = asyncio.run(run_research(topic, config, db_path))
    except ResearchError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print("\nFinal Report:\n")
    print(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
