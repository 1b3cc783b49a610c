from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from bolt.config import settings  # noqa: E402
from bolt.db.base import session_scope  # noqa: E402
from bolt.services.cleanup import cleanup_stale_chat_sessions  # noqa: E402


def main(days: int, dry_run: bool) -> None:
    logging.basicConfig(level=settings.LOG_LEVEL)
    with session_scope() as session:
        summary = cleanup_stale_chat_sessions(session, days=days, dry_run=dry_run)
    prefix = "Would deactivate" if dry_run else "Deactivated"
    print(f"{prefix} {summary['sessions']} chat sessions ({summary['files']} files)")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Deactivate chat sessions with no recent activity.")
    parser.add_argument(
        "--days",
        type=int,
        default=settings.CHAT_SESSION_RETENTION_DAYS,
        help="Sessions idle for longer than this many days are deactivated.",
    )
    parser.add_argument("--dry-run", action="store_true", help="Report what would be removed without changing anything.")
    args = parser.parse_args()
    main(days=args.days, dry_run=args.dry_run)
