"""Per-tool collectors.

Each collector inspects the artifacts one AI tool leaves on disk and returns
a ``CollectorResult``. Collection is best-effort: filesystem errors are
reported on stderr and leave the affected metric at its default.
"""

import json
import os
import sys
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from .crypto import encrypt, is_valid_encryption_key
from .models import CollectorResult, SessionDetail, TaskType
from .parser import get_session_info, load_sessions_index, normalize_turns
from .prompts import aggregate_prompting, classify_prompting
from .sanitize import sanitize_content, truncate
from .sessions import (
    count_recent,
    file_mtime,
    find_all_session_files,
    find_project_dirs,
    get_claude_dir,
    get_projects_dir,
)
from .stats import round_half_up
from .tasks import detects_plan_mode, infer_task_type
from .workflow import (
    aggregate_workflow,
    classify_workflow,
    detect_skills_from_tool_calls,
    summarize_model_usage,
)


SUMMARY_MAX_CHARS = 200


def _iso(dt: datetime) -> str:
    """UTC ISO-8601 with milliseconds and a Z suffix."""
    return dt.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def _now_iso() -> str:
    return _iso(datetime.now(timezone.utc))


def _warn(tool: str, error: Exception) -> None:
    print(f"Warning: {tool}: {type(error).__name__}: {error}", file=sys.stderr)


# =============================================================================
# Claude Code
# =============================================================================

def _session_files_with_index(projects_dir: Path) -> list[tuple[Path, dict]]:
    """Session files across projects, oldest first, each with its project's index."""
    indexes: dict[Path, dict] = {}
    sessions = []
    for path in find_all_session_files(projects_dir):
        project_dir = path.parent
        if project_dir not in indexes:
            indexes[project_dir] = load_sessions_index(project_dir)
        sessions.append((path, indexes[project_dir]))
    return sessions


def _index_text(entry: dict, key: str) -> Optional[str]:
    value = entry.get(key)
    return value if isinstance(value, str) else None


def collect_claude_code(
    encryption_key: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CollectorResult:
    """
    Collect Claude Code usage from ~/.claude/projects transcripts.

    Args:
        encryption_key: Base64 AES-256 key; when valid, sanitized session
            details are attached encrypted under ``encrypted``
        now: Reference time for the recent-activity windows

    Returns:
        CollectorResult for ``claude-code``
    """
    metrics: dict = {
        'sessionsCount': 0,
        'lastUsed': None,
        'installed': False,
    }

    if not get_claude_dir().exists():
        return CollectorResult('claude-code', metrics, _now_iso())

    metrics['installed'] = True
    projects_dir = get_projects_dir()

    try:
        metrics['projectsCount'] = len(find_project_dirs(projects_dir))
        sessions = _session_files_with_index(projects_dir)
    except OSError as e:
        _warn('claude-code', e)
        return CollectorResult('claude-code', metrics, _now_iso())

    prompting_data = []
    workflow_data = []
    details: list[SessionDetail] = []
    model_sessions = []
    mtimes: list[datetime] = []
    task_types: Counter = Counter()
    models: set[str] = set()
    total_tokens = 0
    minutes = 0.0
    uses_plan_mode = False

    for path, index in sessions:
        try:
            mtime = file_mtime(path)
            info = get_session_info(path)
        except (OSError, UnicodeDecodeError) as e:
            _warn('claude-code', e)
            continue

        mtimes.append(mtime)
        entry = index.get(info.session_id) or index.get(path.stem) or {}
        summary = _index_text(entry, 'summary') or info.summary
        first_prompt = _index_text(entry, 'firstPrompt') or info.first_prompt

        turns = normalize_turns(info.messages)
        prompting_data.append(classify_prompting(turns))
        workflow_data.append(
            classify_workflow(turns, detect_skills_from_tool_calls(info.tool_calls))
        )

        task_type = infer_task_type(summary, first_prompt)
        plan_mode = detects_plan_mode(summary)
        task_types[task_type.value] += 1
        uses_plan_mode = uses_plan_mode or plan_mode

        model = info.models_used[0] if info.models_used else None
        models.update(info.models_used)
        model_sessions.append((model, summary, first_prompt))
        total_tokens += info.total_tokens

        if info.first_timestamp and info.last_timestamp:
            minutes += (info.last_timestamp - info.first_timestamp).total_seconds() / 60

        details.append(SessionDetail(
            date=mtime.date().isoformat(),
            task_type=task_type,
            summary=truncate(sanitize_content(summary), SUMMARY_MAX_CHARS),
            model=model,
            turns=len(turns),
            plan_mode=plan_mode,
        ))

    metrics['sessionsCount'] = len(mtimes)
    if mtimes:
        metrics['lastUsed'] = _iso(max(mtimes))
    metrics['sessionsLast7Days'] = count_recent(mtimes, 7, now)
    metrics['sessionsLast30Days'] = count_recent(mtimes, 30, now)
    metrics['totalTokens'] = total_tokens
    metrics['timeSpentMinutes'] = int(round_half_up(minutes))
    metrics['modelsUsed'] = sorted(models)
    metrics['taskTypes'] = {t.value: task_types.get(t.value, 0) for t in TaskType}
    metrics['usesPlanMode'] = uses_plan_mode
    metrics['prompting'] = aggregate_prompting(prompting_data).to_dict()
    metrics['workflow'] = aggregate_workflow(workflow_data).to_dict()
    metrics['modelUsage'] = summarize_model_usage(model_sessions)

    if encryption_key:
        if is_valid_encryption_key(encryption_key):
            payload = {'sessions': [d.to_dict() for d in details]}
            metrics['encrypted'] = encrypt(payload, encryption_key).to_dict()
        else:
            print("Warning: claude-code: invalid encryption key, session details not sent", file=sys.stderr)

    return CollectorResult('claude-code', metrics, _now_iso())


# =============================================================================
# Cursor
# =============================================================================

def get_cursor_dir(platform: Optional[str] = None) -> Path:
    """Cursor's application data directory for the given platform."""
    platform = platform or sys.platform
    if platform == 'win32':
        return Path(os.environ.get('APPDATA', '')) / 'Cursor'
    if platform == 'darwin':
        return Path.home() / 'Library' / 'Application Support' / 'Cursor'
    return Path.home() / '.config' / 'Cursor'


def collect_cursor(
    encryption_key: Optional[str] = None,
    platform: Optional[str] = None,
) -> CollectorResult:
    """Collect Cursor installation and settings signals.

    ``encryption_key`` is accepted for a uniform collector signature; Cursor
    yields no sensitive data.
    """
    cursor_dir = get_cursor_dir(platform)
    metrics: dict = {
        'installed': False,
        'lastUsed': None,
    }

    if not cursor_dir.exists():
        return CollectorResult('cursor', metrics, _now_iso())

    metrics['installed'] = True

    try:
        metrics['lastUsed'] = _iso(file_mtime(cursor_dir))
    except OSError as e:
        _warn('cursor', e)

    settings_path = cursor_dir / 'User' / 'settings.json'
    if settings_path.exists():
        try:
            settings = json.loads(settings_path.read_text(encoding='utf-8'))
            metrics['hasAiFeatures'] = isinstance(settings, dict) and bool(
                settings.get('cursor.ai') or settings.get('cursor.chat')
            )
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            _warn('cursor', e)

    storage_path = cursor_dir / 'User' / 'globalStorage'
    if storage_path.is_dir():
        try:
            metrics['extensionsCount'] = len(list(storage_path.iterdir()))
        except OSError as e:
            _warn('cursor', e)

    return CollectorResult('cursor', metrics, _now_iso())


# =============================================================================
# VS Code / Copilot
# =============================================================================

# (predicate on lower-cased extension dir name, display name)
AI_EXTENSIONS = [
    (lambda name: name.startswith('github.copilot-') and 'chat' not in name, 'GitHub Copilot'),
    (lambda name: 'copilot-chat' in name, 'GitHub Copilot Chat'),
    (lambda name: 'codeium' in name, 'Codeium'),
    (lambda name: 'tabnine' in name, 'Tabnine'),
    (lambda name: 'continue' in name, 'Continue'),
]


def collect_vscode_copilot(encryption_key: Optional[str] = None) -> CollectorResult:
    """Collect VS Code AI extensions from ~/.vscode/extensions.

    ``encryption_key`` is accepted for a uniform collector signature.
    """
    extensions_dir = Path.home() / '.vscode' / 'extensions'
    metrics: dict = {
        'vscodeInstalled': False,
        'copilotInstalled': False,
        'copilotChatInstalled': False,
        'aiExtensions': [],
    }

    if not extensions_dir.is_dir():
        return CollectorResult('vscode-copilot', metrics, _now_iso())

    metrics['vscodeInstalled'] = True

    try:
        names = sorted(p.name.lower() for p in extensions_dir.iterdir())
    except OSError as e:
        _warn('vscode-copilot', e)
        return CollectorResult('vscode-copilot', metrics, _now_iso())

    found: list[str] = []
    for name in names:
        for matches, display in AI_EXTENSIONS:
            if matches(name):
                found.append(display)

    metrics['copilotInstalled'] = 'GitHub Copilot' in found
    metrics['copilotChatInstalled'] = 'GitHub Copilot Chat' in found
    metrics['aiExtensions'] = list(dict.fromkeys(found))

    return CollectorResult('vscode-copilot', metrics, _now_iso())


COLLECTORS: dict[str, Callable[..., CollectorResult]] = {
    'claude-code': collect_claude_code,
    'cursor': collect_cursor,
    'vscode-copilot': collect_vscode_copilot,
}
