"""Exception hierarchy for the agent's edge layers.

The analysis core never raises; these cover configuration, encryption,
delivery and service registration.
"""


class MonitorError(Exception):
    """Base for all agent errors."""


class ConfigError(MonitorError):
    """Agent configuration is missing or unreadable."""


class EncryptionKeyError(MonitorError):
    """Encryption key is not valid base64 or not 32 bytes long."""


class SenderError(MonitorError):
    """Metrics could not be delivered to the collector."""


class AuthError(SenderError):
    """The collector rejected the auth token (401)."""


class ServiceError(MonitorError):
    """Registering or removing the scheduled job failed."""
