"""Transcript parsing and turn normalization.

Reads Claude Code JSONL transcripts into ``SessionMessage`` lists and reduces
any transcript to the ordered, non-empty text of its human turns.
"""

from pathlib import Path
from typing import Iterable, Iterator, Optional
from datetime import datetime, timezone
import json
import sys

from .models import SessionInfo, SessionMessage, ToolCall


# Vendor role names mapped onto the two roles the analyzers understand
ROLE_MAP = {
    'user': 'human',
    'human': 'human',
    'assistant': 'assistant',
}

SESSIONS_INDEX_FILE = 'sessions-index.json'


def parse_jsonl(path: Path) -> Iterator[dict]:
    """
    Stream parse a JSONL file, yielding records.

    Handles malformed lines by skipping them with a warning to stderr.
    Memory-efficient: processes line-by-line without loading entire file.
    """
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                # Location only; transcript lines are user content
                print(f"Warning: Skipping malformed JSON at {path.name}:{line_num} ({type(e).__name__})", file=sys.stderr)
                continue
            if isinstance(record, dict):
                yield record


def extract_text(content) -> str:
    """
    Extract the text of a message.

    Strings are returned verbatim. Block lists contribute the ``text`` of
    every ``type == "text"`` block, joined with newlines. Any other shape
    yields an empty string.
    """
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ''

    texts = []
    for block in content:
        if isinstance(block, dict) and block.get('type') == 'text' and isinstance(block.get('text'), str):
            texts.append(block['text'])
    return '\n'.join(texts)


def _role_and_content(message) -> tuple[Optional[str], object]:
    if isinstance(message, dict):
        return message.get('role'), message.get('content')
    return getattr(message, 'role', None), getattr(message, 'content', None)


def normalize_turns(messages: Iterable) -> list[str]:
    """
    Reduce a transcript to its human turns.

    Assistant turns and turns whose text is blank are dropped; order is kept.
    Malformed messages are skipped rather than raising.
    """
    turns = []
    for message in messages:
        role, content = _role_and_content(message)
        if role != 'human':
            continue
        text = extract_text(content)
        if text.strip():
            turns.append(text)
    return turns


def _parse_timestamp(record: dict) -> Optional[datetime]:
    """
    Parse the timestamp of a record.

    Handles both ISO 8601 strings and Unix milliseconds. Strings without an
    offset are taken as UTC.
    """
    ts = record.get('timestamp')
    if isinstance(ts, str):
        try:
            dt = datetime.fromisoformat(ts.replace('Z', '+00:00'))
        except ValueError:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    if isinstance(ts, (int, float)):
        return datetime.fromtimestamp(ts / 1000, tz=timezone.utc)
    return None


def _message_records(path: Path) -> Iterator[tuple[dict, dict]]:
    """Yield (record, message) pairs for user/assistant transcript records."""
    for record in parse_jsonl(path):
        if record.get('type') not in ('user', 'assistant'):
            continue
        if record.get('isMeta'):
            continue
        msg = record.get('message')
        if not isinstance(msg, dict):
            continue
        yield record, msg


def get_session_messages(path: Path) -> list[SessionMessage]:
    """
    Read the conversation of a transcript as ``SessionMessage`` objects.

    Vendor role ``user`` becomes ``human``; unknown roles are dropped.
    """
    messages = []
    for record, msg in _message_records(path):
        role = ROLE_MAP.get(msg.get('role') or record.get('type'))
        if role is None:
            continue
        messages.append(SessionMessage(role=role, content=msg.get('content', '')))
    return messages


def get_tool_calls(path: Path) -> list[ToolCall]:
    """Extract assistant ``tool_use`` blocks from a transcript."""
    calls = []
    for _, msg in _message_records(path):
        if msg.get('role') != 'assistant':
            continue
        content = msg.get('content')
        if not isinstance(content, list):
            continue
        for block in content:
            if isinstance(block, dict) and block.get('type') == 'tool_use':
                tool_input = block.get('input')
                calls.append(ToolCall(
                    name=block.get('name'),
                    input=tool_input if isinstance(tool_input, dict) else {},
                ))
    return calls


def _usage_tokens(usage: dict) -> int:
    total = 0
    for key in ('input_tokens', 'output_tokens', 'cache_creation_input_tokens', 'cache_read_input_tokens'):
        value = usage.get(key)
        if isinstance(value, (int, float)):
            total += int(value)
    return total


def get_session_info(path: Path) -> SessionInfo:
    """
    Read everything the collectors need from one transcript in a single pass.

    Token usage is counted once per assistant message id, since streamed
    responses repeat the same usage block on every chunk.
    """
    info = SessionInfo(session_id=path.stem)
    models: list[str] = []
    seen_usage_ids: set[str] = set()

    for record in parse_jsonl(path):
        record_type = record.get('type')

        if record_type == 'summary':
            if not info.summary and isinstance(record.get('summary'), str):
                info.summary = record['summary']
            continue

        if record_type not in ('user', 'assistant') or record.get('isMeta'):
            continue
        msg = record.get('message')
        if not isinstance(msg, dict):
            continue

        if isinstance(record.get('sessionId'), str):
            info.session_id = record['sessionId']

        timestamp = _parse_timestamp(record)
        if timestamp is not None:
            if info.first_timestamp is None or timestamp < info.first_timestamp:
                info.first_timestamp = timestamp
            if info.last_timestamp is None or timestamp > info.last_timestamp:
                info.last_timestamp = timestamp

        role = ROLE_MAP.get(msg.get('role') or record_type)
        if role is None:
            continue
        content = msg.get('content', '')
        info.messages.append(SessionMessage(role=role, content=content))

        if role == 'human':
            if not info.first_prompt:
                text = extract_text(content)
                if text.strip():
                    info.first_prompt = text
            continue

        model = msg.get('model')
        if isinstance(model, str) and model and model != '<synthetic>' and model not in models:
            models.append(model)

        usage = msg.get('usage')
        if isinstance(usage, dict):
            usage_id = msg.get('id') or record.get('uuid')
            if usage_id is None or usage_id not in seen_usage_ids:
                if usage_id is not None:
                    seen_usage_ids.add(usage_id)
                info.total_tokens += _usage_tokens(usage)

        if isinstance(content, list):
            for block in content:
                if isinstance(block, dict) and block.get('type') == 'tool_use':
                    tool_input = block.get('input')
                    info.tool_calls.append(ToolCall(
                        name=block.get('name'),
                        input=tool_input if isinstance(tool_input, dict) else {},
                    ))

    info.models_used = models
    return info


def load_sessions_index(project_dir: Path) -> dict[str, dict]:
    """
    Load the optional per-project session index.

    Returns a mapping of session id to index entry (``summary``,
    ``firstPrompt``, ...). Missing or invalid index files yield an empty dict.
    """
    index_path = project_dir / SESSIONS_INDEX_FILE
    if not index_path.exists():
        return {}

    try:
        with index_path.open('r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        print(f"Warning: Ignoring unreadable session index in {project_dir.name} ({type(e).__name__})", file=sys.stderr)
        return {}

    entries = data.get('entries') if isinstance(data, dict) else data
    if not isinstance(entries, list):
        return {}

    index = {}
    for entry in entries:
        if isinstance(entry, dict) and isinstance(entry.get('sessionId'), str):
            index[entry['sessionId']] = entry
    return index
