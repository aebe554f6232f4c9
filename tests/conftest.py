"""Pytest fixtures for monitor-ia tests."""

import base64
import json
import os
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the test fixtures directory."""
    return Path(__file__).parent / 'fixtures'


@pytest.fixture
def sample_session_path(fixtures_dir) -> Path:
    """Path to the sample Claude Code transcript."""
    return fixtures_dir / 'sample_session.jsonl'


@pytest.fixture
def malformed_path(fixtures_dir) -> Path:
    """Path to the transcript with a malformed line."""
    return fixtures_dir / 'malformed.jsonl'


@pytest.fixture
def fake_home(tmp_path, monkeypatch) -> Path:
    """Point Path.home() at an empty temporary directory."""
    monkeypatch.setattr(Path, 'home', lambda: tmp_path)
    return tmp_path


@pytest.fixture
def projects_dir(fake_home) -> Path:
    """An empty ~/.claude/projects under the fake home."""
    path = fake_home / '.claude' / 'projects'
    path.mkdir(parents=True)
    return path


@pytest.fixture
def make_session(projects_dir):
    """
    Factory writing a transcript under ~/.claude/projects/<project>/.

    Each prompt becomes a user record followed by an assistant reply with
    15 tokens of usage, one minute apart.
    """
    base = datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)

    def _make(
        session_id: str,
        prompts: list,
        project: str = '-home-dev-app',
        summary: str = None,
        model: str = 'claude-sonnet-4-20250514',
        skills: tuple = (),
        mtime: datetime = None,
    ) -> Path:
        project_dir = projects_dir / project
        project_dir.mkdir(exist_ok=True)

        records = []
        if summary is not None:
            records.append({'type': 'summary', 'summary': summary})

        for i, prompt in enumerate(prompts):
            ts = base + timedelta(minutes=2 * i)
            records.append({
                'type': 'user',
                'sessionId': session_id,
                'timestamp': ts.isoformat().replace('+00:00', 'Z'),
                'message': {'role': 'user', 'content': prompt},
            })
            content = [{'type': 'text', 'text': 'ok'}]
            if i == 0:
                content += [
                    {'type': 'tool_use', 'name': 'Skill', 'input': {'skill': s}}
                    for s in skills
                ]
            records.append({
                'type': 'assistant',
                'sessionId': session_id,
                'timestamp': (ts + timedelta(minutes=1)).isoformat().replace('+00:00', 'Z'),
                'message': {
                    'id': f'{session_id}-msg-{i}',
                    'role': 'assistant',
                    'model': model,
                    'content': content,
                    'usage': {'input_tokens': 10, 'output_tokens': 5},
                },
            })

        path = project_dir / f'{session_id}.jsonl'
        path.write_text('\n'.join(json.dumps(r) for r in records) + '\n', encoding='utf-8')

        if mtime is not None:
            stamp = mtime.timestamp()
            os.utime(path, (stamp, stamp))
        return path

    return _make


@pytest.fixture
def sample_project(projects_dir, sample_session_path) -> Path:
    """A project directory holding the sample transcript."""
    project_dir = projects_dir / '-home-dev-app'
    project_dir.mkdir()
    shutil.copy(sample_session_path, project_dir / 'abc-123.jsonl')
    return project_dir


@pytest.fixture
def encryption_key() -> str:
    """A valid base64 AES-256 key."""
    return base64.b64encode(bytes(range(32))).decode('ascii')
