"""Session discovery for Claude Code transcripts."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional


def get_claude_dir() -> Path:
    return Path.home() / '.claude'


def get_projects_dir() -> Path:
    return get_claude_dir() / 'projects'


def find_session_files(sessions_dir: Path) -> list[Path]:
    """
    Find all session JSONL files in a directory.

    Excludes .jsonl.lock files (active sessions).
    Returns files sorted by modification time (oldest first).
    """
    if not sessions_dir.is_dir():
        return []

    files = [
        f for f in sessions_dir.glob('*.jsonl')
        if f.is_file() and not f.name.endswith('.jsonl.lock')
    ]

    files.sort(key=lambda p: p.stat().st_mtime)
    return files


def find_project_dirs(projects_dir: Path) -> list[Path]:
    """List project directories, sorted by name."""
    if not projects_dir.is_dir():
        return []
    return sorted(p for p in projects_dir.iterdir() if p.is_dir())


def find_all_session_files(projects_dir: Path) -> list[Path]:
    """
    Find session files across every project.

    Sorted oldest first by modification time, so later entries are the most
    recent sessions.
    """
    files = []
    for project_dir in find_project_dirs(projects_dir):
        files.extend(find_session_files(project_dir))
    files.sort(key=lambda p: p.stat().st_mtime)
    return files


def file_mtime(path: Path) -> datetime:
    """Modification time of a file as an aware UTC datetime."""
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)


def count_recent(mtimes: Iterable[datetime], days: int, now: Optional[datetime] = None) -> int:
    """Count timestamps within the last ``days`` days of ``now``."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=days)
    return sum(1 for t in mtimes if t >= cutoff)
