"""
adapters.cli.session - Local CLI state storage.

The last active thread id is stored in ~/.ux-architect/session.json so
`ask` continues the same conversation across CLI invocations.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_SESSION_DIR = Path.home() / ".ux-architect"
_SESSION_FILE = _SESSION_DIR / "session.json"


@dataclass
class CliSession:
    thread_id: Optional[str] = None


def load_session(path: Path = _SESSION_FILE) -> CliSession:
    """Return the stored CLI state, or an empty one."""
    if not path.exists():
        return CliSession()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return CliSession(**data)
    except (OSError, ValueError, TypeError):
        logger.warning("Ignoring unreadable CLI session file %s", path)
        return CliSession()


def save_session(session: CliSession, path: Path = _SESSION_FILE) -> None:
    """Persist CLI state to disk."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(session), indent=2), encoding="utf-8")


def clear_session(path: Path = _SESSION_FILE) -> None:
    if path.exists():
        path.unlink()
