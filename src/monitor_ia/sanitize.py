"""Sanitization of text destined for the encrypted payload.

Strips secrets, filesystem paths and the local username from session
summaries before they are encrypted and sent. Only sanitized text may leave
the machine, even encrypted.
"""

import getpass
import re
from typing import List, Optional, Tuple


# =============================================================================
# Redaction patterns
# =============================================================================

# IMPORTANT: Order matters! Secrets first (they can contain path-like
# fragments), then home directories, then any remaining absolute path.
REDACTION_PATTERNS = [
    # --- Secrets ---
    (r'sk-ant-[a-zA-Z0-9\-_]{32,}', '[REDACTED-ANTHROPIC-API-KEY]'),
    (r'sk-(?:proj-)?[a-zA-Z0-9]{30,}', '[REDACTED-OPENAI-API-KEY]'),
    (r'gh[pousr]_[A-Za-z0-9]{20,}', '[REDACTED-GITHUB-TOKEN]'),
    (r'github_pat_[A-Za-z0-9_]{22,}', '[REDACTED-GITHUB-PAT]'),
    (r'AKIA[A-Z0-9]{16}', '[REDACTED-AWS-ACCESS-KEY]'),
    (r'eyJ[a-zA-Z0-9_-]{5,}\.[a-zA-Z0-9_-]{5,}\.[a-zA-Z0-9_-]{5,}', '[REDACTED-JWT]'),
    (r'(?i)bearer\s+[A-Za-z0-9._~+/=-]{16,}', 'Bearer [REDACTED-BEARER-TOKEN]'),
    (r'\w+://[^:@\s/]+:[^@\s]+@\S+', '[REDACTED-CONNECTION-STRING]'),
    (r'(?i)\b(api[_-]?key|secret|password|passwd|token)(\s*[=:]\s*)["\']?[^\s"\']{8,}["\']?', r'\1\2[REDACTED-SECRET]'),

    # --- Home directories (username is part of the path) ---
    (r'/Users/[^/\s]+(?:/[^\s"\'`)]*)?', '[PATH]'),
    (r'/home/[^/\s]+(?:/[^\s"\'`)]*)?', '[PATH]'),
    (r'(?i)[A-Z]:\\Users\\[^\\\s]+(?:\\[^\s"\'`)]*)?', '[PATH]'),
    (r'~[/\\][^\s"\'`)]*', '[PATH]'),

    # --- Any other absolute path with at least two components ---
    (r'(?<![\w:/.])/[\w.-]+(?:/[\w.-]+)+/?', '[PATH]'),
    (r'(?i)\b[A-Z]:\\[^\s"\'`)]+', '[PATH]'),
]

_COMPILED_PATTERNS = [(re.compile(p), replacement) for p, replacement in REDACTION_PATTERNS]

# Placeholder tokens produced above; never treated as usernames or paths
_PLACEHOLDER = re.compile(r'\[(?:PATH|USER|REDACTED-[A-Z0-9-]+)\]')


def _local_username() -> Optional[str]:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        # No passwd entry or login name (containers, services)
        return None


def sanitize_content(content: str, username: Optional[str] = None) -> str:
    """
    Remove secrets, paths and the username from text.

    Paths become ``[PATH]``, the username ``[USER]`` and secrets
    ``[REDACTED-TYPE]``. Running it twice gives the same result.

    Args:
        content: Raw text, e.g. a session summary
        username: Username to strip; defaults to the current login name

    Returns:
        Sanitized text
    """
    if not content:
        return ''

    sanitized = content
    for pattern, replacement in _COMPILED_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)

    user = username if username is not None else _local_username()
    # Very short names would match ordinary words
    if user and len(user) >= 3:
        sanitized = re.sub(rf'(?<![\w\[]){re.escape(user)}(?![\w\]])', '[USER]', sanitized, flags=re.IGNORECASE)

    return sanitized


def validate_no_paths(content: str) -> Tuple[bool, List[str]]:
    """
    Check that text carries no absolute paths or home directories.

    Returns:
        Tuple of (is_valid, list_of_violations)
    """
    violations = []
    stripped = _PLACEHOLDER.sub('', content)

    if re.search(r'/(?:Users|home)/[^/\s]+', stripped):
        violations.append("Found home directory path")

    if re.search(r'(?i)[A-Z]:\\', stripped):
        violations.append("Found Windows drive path")

    if re.search(r'(?<![\w:/.])/[\w.-]+/[\w.-]+', stripped):
        violations.append("Found absolute path")

    return (len(violations) == 0, violations)


def truncate(text: str, limit: int = 200) -> str:
    """Cut text to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit - 3].rstrip() + '...'
