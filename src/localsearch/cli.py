"""CLI that answers one question and prints the event stream as JSON lines."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Sequence

from localsearch.config import Settings, get_settings
from localsearch.models import ConversationTurn
from localsearch.services.events import ErrorEvent, event_to_json
from localsearch.services.pipeline import FocusMode, LocalSearchPipeline


def load_history(path: Path | None) -> list[ConversationTurn]:
    """Read ``[{"role": ..., "content": ...}, ...]`` from a JSON file."""

    if path is None:
        return []
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"History file must contain a JSON list: {path}")
    turns: list[ConversationTurn] = []
    for item in data:
        role = item.get("role")
        if role not in ("user", "assistant"):
            raise ValueError(f"Unsupported history role: {role!r}")
        turns.append(ConversationTurn(role=role, content=str(item.get("content", ""))))
    return turns


async def run_query(
    pipeline: LocalSearchPipeline,
    question: str,
    *,
    history: Sequence[ConversationTurn] = (),
    corpus_id: str | None = None,
    focus_mode: FocusMode = FocusMode.LOCAL_SEARCH,
    out=None,
) -> bool:
    """Print every event; return ``False`` when the stream ended with an error."""

    out = out or sys.stdout
    ok = True
    async for event in pipeline.stream(question, history, corpus_id=corpus_id, focus_mode=focus_mode):
        print(event_to_json(event), file=out, flush=True)
        if isinstance(event, ErrorEvent):
            ok = False
    return ok


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Answer a question from the local document corpus.")
    parser.add_argument("question", help="Question to answer")
    parser.add_argument("--corpus", type=str, default=None, help="Index/corpus to search")
    parser.add_argument(
        "--focus-mode",
        choices=[mode.value for mode in FocusMode],
        default=FocusMode.LOCAL_SEARCH.value,
        help="localSearch retrieves documents; writingAssistant answers without retrieval",
    )
    parser.add_argument("--history", type=Path, default=None, help="Optional JSON file with prior turns")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None, *, settings: Settings | None = None) -> int:
    from localsearch.services.factory import build_pipeline

    args = parse_args(argv if argv is not None else sys.argv[1:])
    settings = settings or get_settings()
    history = load_history(args.history)
    pipeline = build_pipeline(settings)

    async def answer() -> bool:
        try:
            return await run_query(
                pipeline,
                args.question,
                history=history,
                corpus_id=args.corpus,
                focus_mode=FocusMode(args.focus_mode),
            )
        finally:
            await pipeline.aclose()

    ok = asyncio.run(answer())
    return 0 if ok else 1


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
