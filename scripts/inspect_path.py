#!/usr/bin/env python3
"""
Print a learning path's progression and optionally repair a stalled unlock cascade.

Run: python scripts/inspect_path.py <path_id>
     python scripts/inspect_path.py <path_id> --repair
     python scripts/inspect_path.py --user anonymous

Uses DATABASE_URL (or .env) like the API. --repair re-issues the unlock step for
the highest completed node, which is what a failed completion leaves behind.
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

_project_root = Path(__file__).resolve().parent.parent
for p in (_project_root, _project_root / "src"):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from api.config import Settings, build_store  # noqa: E402
from learning_paths.errors import PathError  # noqa: E402
from learning_paths.progression import ProgressionEngine  # noqa: E402


def _summary(path) -> dict:
    return {
        "id": path.id,
        "title": path.title,
        "status": path.status.value,
        "earned_xp": path.earned_xp(),
        "total_xp": path.total_xp(),
        "nodes": [
            {"position": n.position, "id": n.id, "title": n.title, "status": n.status.value}
            for n in path.nodes
        ],
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Inspect learning path progression.")
    parser.add_argument("path_id", nargs="?", help="Path ID")
    parser.add_argument("--user", default=None, help="List paths of this user instead")
    parser.add_argument("--repair", action="store_true", help="Re-run the unlock cascade for the last completed node")
    args = parser.parse_args()

    if not args.path_id and not args.user:
        parser.error("give a path_id or --user")

    settings = Settings()
    store = build_store(settings)
    repos = store.repositories()
    engine = ProgressionEngine(repos.paths, repos.nodes, transaction=store.transaction)

    try:
        if args.user:
            paths = engine.get_user_paths(args.user)
            print(json.dumps([{"id": p.id, "title": p.title, "status": p.status.value} for p in paths], indent=2))
            return 0

        path = engine.get_path(args.path_id)
        if args.repair:
            completed = [n for n in path.nodes if n.is_completed()]
            if not completed:
                print("Nothing to repair: no completed nodes.")
            else:
                result = engine.resume_progression(path.id, completed[-1].id)
                print(f"unlocked_next={result.unlocked_next} path_completed={result.path_completed}")
                path = engine.get_path(path.id)
        print(json.dumps(_summary(path), indent=2))
        return 0
    except PathError as e:
        print(f"Error: {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    finally:
        store.engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
