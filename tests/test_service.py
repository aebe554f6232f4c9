"""Tests for scheduler registration."""

import plistlib
import subprocess
import sys
from unittest.mock import patch

import pytest

from monitor_ia import service
from monitor_ia.exceptions import ServiceError
from monitor_ia.service import (
    CRON_MARKER,
    TASK_NAME,
    get_log_path,
    get_plist_path,
    service_install,
    service_status,
    service_uninstall,
)


class FakeRun:
    """Stand-in for subprocess.run that records calls.

    ``responses`` maps a command prefix (tuple) to (returncode, stdout) or an
    exception instance to raise.
    """

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    def __call__(self, args, input=None, capture_output=False, text=False, check=False):
        self.calls.append((list(args), input))
        for prefix, response in self.responses.items():
            if tuple(args[:len(prefix)]) == prefix:
                if isinstance(response, BaseException):
                    raise response
                returncode, stdout = response
                break
        else:
            returncode, stdout = 0, ''
        if check and returncode != 0:
            raise subprocess.CalledProcessError(returncode, args, output=stdout, stderr='boom')
        return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr='')

    def commands(self):
        return [' '.join(args) for args, _ in self.calls]

    def input_for(self, *prefix):
        for args, input in self.calls:
            if tuple(args[:len(prefix)]) == prefix:
                return input
        return None


@pytest.fixture
def fake_run():
    runner = FakeRun()
    with patch.object(service.subprocess, 'run', runner):
        yield runner


class TestLinux:
    """cron backend."""

    def test_install_replaces_old_entry(self, fake_home, fake_run):
        fake_run.responses[('crontab', '-l')] = (
            0, f'0 1 * * * backup.sh\n{CRON_MARKER}\n0 */3 * * * python -m monitor_ia run-once\n')

        lines = service_install(6, platform='linux')

        crontab = fake_run.input_for('crontab', '-')
        assert 'backup.sh' in crontab
        assert crontab.count(CRON_MARKER) == 1
        assert '0 */6 * * * ' in crontab
        assert f'{sys.executable} -m monitor_ia run-once' in crontab
        assert str(get_log_path()) in crontab
        assert '*/3' not in crontab
        assert lines[0] == 'Service installed (cron)'

    def test_install_quotes_interpreter_path(self, fake_home, fake_run, monkeypatch):
        monkeypatch.setattr(sys, 'executable', '/opt/my tools/python')
        fake_run.responses[('crontab', '-l')] = (1, '')

        service_install(6, platform='linux')

        crontab = fake_run.input_for('crontab', '-')
        assert "'/opt/my tools/python' -m monitor_ia run-once" in crontab

    def test_install_without_existing_crontab(self, fake_home, fake_run):
        fake_run.responses[('crontab', '-l')] = (1, '')

        service_install(2, platform='linux')

        assert fake_run.input_for('crontab', '-').startswith(CRON_MARKER)

    def test_install_failure(self, fake_home, fake_run):
        fake_run.responses[('crontab', '-')] = (1, '')

        with pytest.raises(ServiceError):
            service_install(6, platform='linux')

    def test_crontab_missing(self, fake_home, fake_run):
        fake_run.responses[('crontab',)] = FileNotFoundError('crontab')

        with pytest.raises(ServiceError, match='crontab not found'):
            service_install(6, platform='linux')

    def test_uninstall(self, fake_home, fake_run):
        fake_run.responses[('crontab', '-l')] = (0, f'0 1 * * * backup.sh\n{CRON_MARKER}\n0 */6 * * * x -m monitor_ia run-once\n')

        assert service_uninstall(platform='linux') == ['Cron entry removed.']
        assert fake_run.input_for('crontab', '-') == '0 1 * * * backup.sh\n'

    def test_uninstall_nothing(self, fake_home, fake_run):
        fake_run.responses[('crontab', '-l')] = (0, '0 1 * * * backup.sh\n')

        assert service_uninstall(platform='linux') == ['No cron entry found.']
        assert fake_run.input_for('crontab', '-') is None

    def test_status(self, fake_home, fake_run):
        fake_run.responses[('crontab', '-l')] = (0, f'{CRON_MARKER}\n0 */6 * * * x\n')
        get_log_path().parent.mkdir(parents=True)
        get_log_path().write_text('first\nMetrics sent.\n')

        lines = service_status(platform='linux')

        assert '  State: active' in lines
        assert lines[-1] == '  Last log line: Metrics sent.'

    def test_status_not_installed(self, fake_home, fake_run):
        fake_run.responses[('crontab', '-l')] = (1, '')

        assert service_status(platform='linux') == [f'Service "{TASK_NAME}" not installed.']


class TestMac:
    """launchd backend."""

    @pytest.fixture(autouse=True)
    def uid(self, monkeypatch):
        monkeypatch.setattr(service.os, 'getuid', lambda: 501, raising=False)

    def test_install_uses_bootstrap(self, fake_home, fake_run):
        service_install(6, platform='darwin')

        commands = fake_run.commands()
        assert f'launchctl bootstrap gui/501 {get_plist_path()}' in commands
        assert not any('launchctl load' in c for c in commands)

    def test_install_writes_plist(self, fake_home, fake_run):
        service_install(4, platform='darwin')

        plist = plistlib.loads(get_plist_path().read_bytes())
        assert plist['Label'] == 'com.monitor-ia.agent'
        assert plist['ProgramArguments'][-3:] == ['-m', 'monitor_ia', 'run-once']
        assert plist['StartInterval'] == 4 * 3600
        assert plist['StandardOutPath'] == str(get_log_path())

    def test_install_failure(self, fake_home, fake_run):
        fake_run.responses[('launchctl', 'bootstrap')] = (5, '')

        with pytest.raises(ServiceError, match='launchctl bootstrap'):
            service_install(6, platform='darwin')

    def test_uninstall_uses_bootout(self, fake_home, fake_run):
        service_install(6, platform='darwin')
        fake_run.calls.clear()

        assert service_uninstall(platform='darwin') == ['launchd service removed.']
        commands = fake_run.commands()
        assert any(c.startswith('launchctl bootout gui/501') for c in commands)
        assert not any('launchctl unload' in c for c in commands)
        assert not get_plist_path().exists()

    def test_uninstall_nothing(self, fake_home, fake_run):
        fake_run.responses[('launchctl', 'bootout')] = (3, '')

        assert service_uninstall(platform='darwin') == ['No launchd service found.']

    def test_status(self, fake_home, fake_run):
        fake_run.responses[('launchctl', 'list')] = (0, '-\t0\tcom.monitor-ia.agent\n')

        assert service_status(platform='darwin')[1] == '  State: active'


class TestWindows:
    """Task Scheduler backend."""

    def test_install(self, fake_home, fake_run):
        lines = service_install(6, platform='win32')

        create = next(args for args, _ in fake_run.calls if args[1] == '/Create')
        assert create[create.index('/TN') + 1] == TASK_NAME
        assert create[create.index('/MO') + 1] == '360'
        assert create[create.index('/TR') + 1].endswith('-m monitor_ia run-once')
        assert lines[0] == 'Service installed (Task Scheduler)'

    def test_uninstall_missing(self, fake_home, fake_run):
        fake_run.responses[('schtasks', '/Delete')] = (1, '')

        assert service_uninstall(platform='win32') == [f'Task "{TASK_NAME}" not found.']

    def test_status_spanish_labels(self, fake_home, fake_run):
        fake_run.responses[('schtasks', '/Query')] = (
            0, 'Estado: Listo\nÚltima vez que se ejecutó: 15/01/2026 10:00\n')

        lines = service_status(platform='win32')

        assert lines == [
            f'Service: {TASK_NAME}',
            '  State: Listo',
            '  Last run: 15/01/2026 10:00',
            '  Next run: unknown',
        ]
