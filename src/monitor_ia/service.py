"""Registration of the periodic ``run-once`` job with the OS scheduler.

Linux uses the user's crontab, macOS a launchd agent, Windows the Task
Scheduler. Every operation returns human-readable status lines for the CLI to
echo; scheduler failures raise ``ServiceError``.
"""

import os
import plistlib
import re
import shlex
import subprocess
import sys
from pathlib import Path
from typing import Optional

from .config import get_config_dir
from .exceptions import ServiceError


TASK_NAME = 'MonitorIA-Agent'
LAUNCHD_LABEL = 'com.monitor-ia.agent'
CRON_MARKER = f'# {TASK_NAME}'


def agent_command() -> list[str]:
    """Command the scheduler runs: this interpreter, one collect-and-send pass."""
    return [sys.executable, '-m', 'monitor_ia', 'run-once']


def get_log_path() -> Path:
    return get_config_dir() / 'agent.log'


def get_plist_path() -> Path:
    return Path.home() / 'Library' / 'LaunchAgents' / f'{LAUNCHD_LABEL}.plist'


def _run(args: list[str], input: Optional[str] = None, check: bool = True) -> subprocess.CompletedProcess:
    """Run a scheduler command, turning launch and exit failures into ServiceError."""
    try:
        return subprocess.run(args, input=input, capture_output=True, text=True, check=check)
    except FileNotFoundError as e:
        raise ServiceError(f"{args[0]} not found") from e
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or '').strip() or f"exit status {e.returncode}"
        raise ServiceError(f"{' '.join(args[:2])} failed: {detail}") from e


def _last_log_line() -> Optional[str]:
    log_path = get_log_path()
    if not log_path.exists():
        return None
    lines = log_path.read_text(encoding='utf-8', errors='replace').strip().splitlines()
    return lines[-1] if lines else None


def _platform(platform: Optional[str]) -> str:
    platform = platform or sys.platform
    if platform == 'win32':
        return 'windows'
    if platform == 'darwin':
        return 'mac'
    return 'linux'


# =============================================================================
# Linux (cron)
# =============================================================================

def _read_crontab() -> str:
    # `crontab -l` exits non-zero when the user has no crontab yet
    result = _run(['crontab', '-l'], check=False)
    return result.stdout if result.returncode == 0 else ''


def _without_agent_entries(crontab: str) -> list[str]:
    return [
        line for line in crontab.splitlines()
        if TASK_NAME not in line and 'monitor_ia' not in line
    ]


def _install_linux(interval_hours: int) -> list[str]:
    command = shlex.join(agent_command())
    log = shlex.quote(str(get_log_path()))
    cron_line = f'0 */{interval_hours} * * * {command} >> {log} 2>&1'

    lines = [line for line in _without_agent_entries(_read_crontab()) if line.strip()]
    lines += [CRON_MARKER, cron_line]
    _run(['crontab', '-'], input='\n'.join(lines) + '\n')

    return [
        "Service installed (cron)",
        f"  Interval: every {interval_hours}h",
        f"  Log: {get_log_path()}",
        "",
        "Verify with: crontab -l",
    ]


def _uninstall_linux() -> list[str]:
    existing = _read_crontab()
    remaining = _without_agent_entries(existing)
    if remaining == existing.splitlines():
        return ["No cron entry found."]
    _run(['crontab', '-'], input='\n'.join(remaining) + '\n' if remaining else '')
    return ["Cron entry removed."]


def _status_linux() -> list[str]:
    if CRON_MARKER not in _read_crontab():
        return [f'Service "{TASK_NAME}" not installed.']
    lines = [f"Service: {TASK_NAME} (cron)", "  State: active"]
    last = _last_log_line()
    if last:
        lines.append(f"  Last log line: {last}")
    return lines


# =============================================================================
# macOS (launchd)
# =============================================================================

def _launchd_domain() -> str:
    return f'gui/{os.getuid()}'


def _build_plist(interval_hours: int) -> bytes:
    config_dir = get_config_dir()
    return plistlib.dumps({
        'Label': LAUNCHD_LABEL,
        'ProgramArguments': agent_command(),
        'WorkingDirectory': str(config_dir),
        'StartInterval': interval_hours * 3600,
        'RunAtLoad': True,
        'StandardOutPath': str(get_log_path()),
        'StandardErrorPath': str(config_dir / 'agent-error.log'),
    })


def _install_mac(interval_hours: int) -> list[str]:
    plist_path = get_plist_path()

    # Not loaded yet is fine
    _run(['launchctl', 'bootout', _launchd_domain(), str(plist_path)], check=False)

    plist_path.parent.mkdir(parents=True, exist_ok=True)
    get_config_dir().mkdir(parents=True, exist_ok=True)
    plist_path.write_bytes(_build_plist(interval_hours))

    _run(['launchctl', 'bootstrap', _launchd_domain(), str(plist_path)])

    return [
        "Service installed (launchd)",
        f"  Interval: every {interval_hours}h",
        f"  Log: {get_log_path()}",
    ]


def _uninstall_mac() -> list[str]:
    plist_path = get_plist_path()
    _run(['launchctl', 'bootout', _launchd_domain(), str(plist_path)], check=False)

    if not plist_path.exists():
        return ["No launchd service found."]
    plist_path.unlink()
    return ["launchd service removed."]


def _status_mac() -> list[str]:
    output = _run(['launchctl', 'list'], check=False).stdout
    if LAUNCHD_LABEL not in output:
        return [f'Service "{LAUNCHD_LABEL}" not installed.']
    lines = [f"Service: {LAUNCHD_LABEL} (launchd)", "  State: active"]
    last = _last_log_line()
    if last:
        lines.append(f"  Last log line: {last}")
    return lines


# =============================================================================
# Windows (Task Scheduler)
# =============================================================================

def _install_windows(interval_hours: int) -> list[str]:
    _run(['schtasks', '/Delete', '/TN', TASK_NAME, '/F'], check=False)

    command = subprocess.list2cmdline(agent_command())
    _run([
        'schtasks', '/Create', '/TN', TASK_NAME, '/TR', command,
        '/SC', 'MINUTE', '/MO', str(interval_hours * 60), '/F',
    ])

    return [
        "Service installed (Task Scheduler)",
        f"  Task: {TASK_NAME}",
        f"  Interval: every {interval_hours}h",
        f"  Command: {command}",
    ]


def _uninstall_windows() -> list[str]:
    result = _run(['schtasks', '/Delete', '/TN', TASK_NAME, '/F'], check=False)
    if result.returncode != 0:
        return [f'Task "{TASK_NAME}" not found.']
    return [f'Task "{TASK_NAME}" removed.']


# English and Spanish field labels of `schtasks /Query /V`
_SCHTASKS_FIELDS = [
    ('State', r'(?:Status|Estado):\s*(.+)', 'unknown'),
    ('Last run', r'(?:Last Run Time|Última vez que se ejecutó):\s*(.+)', 'never'),
    ('Next run', r'(?:Next Run Time|Próxima ejecución):\s*(.+)', 'unknown'),
]


def _status_windows() -> list[str]:
    result = _run(['schtasks', '/Query', '/TN', TASK_NAME, '/FO', 'LIST', '/V'], check=False)
    if result.returncode != 0:
        return [f'Service "{TASK_NAME}" not installed.']

    lines = [f"Service: {TASK_NAME}"]
    for label, pattern, default in _SCHTASKS_FIELDS:
        match = re.search(pattern, result.stdout, re.IGNORECASE)
        lines.append(f"  {label}: {match.group(1).strip() if match else default}")
    return lines


# =============================================================================
# Public API
# =============================================================================

_INSTALL = {'linux': _install_linux, 'mac': _install_mac, 'windows': _install_windows}
_UNINSTALL = {'linux': _uninstall_linux, 'mac': _uninstall_mac, 'windows': _uninstall_windows}
_STATUS = {'linux': _status_linux, 'mac': _status_mac, 'windows': _status_windows}


def service_install(interval_hours: int, platform: Optional[str] = None) -> list[str]:
    """
    Register the agent to run every ``interval_hours``, replacing any previous entry.

    Args:
        interval_hours: Hours between runs
        platform: ``sys.platform``-style name; defaults to the running platform

    Returns:
        Status lines describing the installed job

    Raises:
        ServiceError: If the scheduler command fails
    """
    return _INSTALL[_platform(platform)](interval_hours)


def service_uninstall(platform: Optional[str] = None) -> list[str]:
    """Remove the scheduled job; a missing job is reported, not raised."""
    return _UNINSTALL[_platform(platform)]()


def service_status(platform: Optional[str] = None) -> list[str]:
    """Describe whether the scheduled job is installed."""
    return _STATUS[_platform(platform)]()
