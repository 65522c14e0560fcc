from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import MemoryConfig
from .encoder import LiveState
from .engine import ContextualMemory
from .logging_config import configure_logging
from .persistence import MemoryPersistence

logger = logging.getLogger(__name__)


def _load_outcomes(path: str) -> List[dict]:
    """Read one outcome per JSONL line, skipping blank lines."""
    outcomes = []
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}:{lineno}: invalid JSON ({e})") from e
            if "state" not in entry or "action" not in entry or "reward" not in entry:
                raise ValueError(f"{path}:{lineno}: outcome needs 'state', 'action' and 'reward'")
            outcomes.append(entry)
    return outcomes


def _replay(args: argparse.Namespace) -> int:
    config = MemoryConfig.load(args.config) if args.config else MemoryConfig()
    persistence = MemoryPersistence(args.snapshot_dir) if args.snapshot_dir else None

    if persistence and args.resume:
        memory = ContextualMemory.restore(persistence, args.agent, config=config)
    else:
        memory = ContextualMemory(config, agent_id=args.agent)

    outcomes = _load_outcomes(args.outcomes)
    last_state: Optional[LiveState] = None
    for entry in outcomes:
        last_state = LiveState.from_dict(entry["state"])
        memory.observe(last_state)
        memory.record_outcome(
            entry["action"],
            float(entry["reward"]),
            is_terminal=bool(entry.get("terminal", False)),
        )

    if args.query:
        query_state = LiveState.from_dict(json.loads(args.query))
    else:
        query_state = last_state or LiveState()
    query = memory.encoder.build_context(query_state)

    result = {
        "replayed": len(outcomes),
        "contexts": len(memory.store),
        "suggestion": memory.suggest(query).to_dict(),
        "dangerous": memory.is_dangerous(query),
    }
    print(json.dumps(result, indent=2))

    if persistence:
        memory.snapshot(persistence)
    return 0


def _inspect(args: argparse.Namespace) -> int:
    persistence = MemoryPersistence(args.snapshot_dir)
    config, store = persistence.restore_store(args.agent)
    if store is None:
        print(f"No usable snapshot for agent {args.agent!r} in {args.snapshot_dir}", file=sys.stderr)
        return 1
    memory = ContextualMemory(config, agent_id=args.agent)
    memory.attach_store(store)
    print(json.dumps(memory.debug_snapshot(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="context-memory",
        description="Contextual experience memory - replay outcomes and inspect suggestions",
    )
    ap.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    sub = ap.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="Replay a JSONL outcome log and print a suggestion")
    replay.add_argument("outcomes", help="JSONL file of {state, action, reward, terminal}")
    replay.add_argument("--config", help="YAML or JSON memory config")
    replay.add_argument("--query", help="LiveState JSON to query (default: last replayed state)")
    replay.add_argument("--snapshot-dir", help="Directory to save the resulting memory in")
    replay.add_argument("--resume", action="store_true", help="Start from the saved memory")
    replay.add_argument("--agent", default="agent", help="Agent identifier")
    replay.set_defaults(func=_replay)

    inspect = sub.add_parser("inspect", help="Print the debug snapshot of a saved memory")
    inspect.add_argument("--snapshot-dir", required=True, help="Directory holding snapshots")
    inspect.add_argument("--agent", default="agent", help="Agent identifier")
    inspect.set_defaults(func=_inspect)

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level="DEBUG" if args.verbose else "WARNING")

    try:
        return args.func(args)
    except (OSError, ValueError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
