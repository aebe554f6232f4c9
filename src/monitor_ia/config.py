"""Agent configuration stored in ~/.monitor-ia/config.json."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from .exceptions import ConfigError


DEFAULT_SERVER_URL = 'https://jakite.tech'
DEFAULT_SYNC_INTERVAL_HOURS = 6
MIN_SYNC_INTERVAL_HOURS = 1
MAX_SYNC_INTERVAL_HOURS = 24


def get_config_dir() -> Path:
    """Get the agent's directory (~/.monitor-ia)."""
    return Path.home() / '.monitor-ia'


def get_config_path() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / 'config.json'


@dataclass
class AgentConfig:
    """Persistent agent settings."""
    server_url: str
    auth_token: str
    sync_interval_hours: int = DEFAULT_SYNC_INTERVAL_HOURS
    enabled_collectors: list[str] = field(default_factory=list)
    encryption_key: Optional[str] = None
    consent_given_at: Optional[str] = None
    last_sent_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'AgentConfig':
        """Build a config from the on-disk camelCase layout."""
        if not data.get('serverUrl') or not data.get('authToken'):
            raise ConfigError("Config is missing serverUrl or authToken")
        return cls(
            server_url=data['serverUrl'],
            auth_token=data['authToken'],
            sync_interval_hours=int(data.get('syncIntervalHours', DEFAULT_SYNC_INTERVAL_HOURS)),
            enabled_collectors=list(data.get('enabledCollectors', [])),
            encryption_key=data.get('encryptionKey'),
            consent_given_at=data.get('consentGivenAt'),
            last_sent_at=data.get('lastSentAt'),
        )

    def to_dict(self) -> dict:
        data = {
            'serverUrl': self.server_url,
            'authToken': self.auth_token,
            'syncIntervalHours': self.sync_interval_hours,
            'enabledCollectors': self.enabled_collectors,
        }
        # Optional keys are omitted rather than written as null
        if self.encryption_key:
            data['encryptionKey'] = self.encryption_key
        if self.consent_given_at:
            data['consentGivenAt'] = self.consent_given_at
        if self.last_sent_at:
            data['lastSentAt'] = self.last_sent_at
        return data

    def hours_since_last_send(self, now: Optional[datetime] = None) -> Optional[float]:
        """Hours elapsed since the last successful send, or None if never sent."""
        if not self.last_sent_at:
            return None
        try:
            last = datetime.fromisoformat(self.last_sent_at.replace('Z', '+00:00'))
        except ValueError:
            return None
        now = now or datetime.now(last.tzinfo)
        return (now - last).total_seconds() / 3600


def config_exists() -> bool:
    """Check whether the agent has been set up."""
    return get_config_path().exists()


def load_config() -> AgentConfig:
    """Load the agent config.

    Raises:
        ConfigError: If the agent is not set up or the file is corrupted
    """
    config_path = get_config_path()

    if not config_path.exists():
        raise ConfigError("Agent not configured. Run: monitor-ia-agent setup <token>")

    try:
        with config_path.open('r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise ConfigError(f"Cannot read config at {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config at {config_path}")

    return AgentConfig.from_dict(data)


def save_config(config: AgentConfig) -> None:
    """Write the agent config, creating ~/.monitor-ia if needed."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    with get_config_path().open('w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)
