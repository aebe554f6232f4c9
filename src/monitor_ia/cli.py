"""CLI entry point for monitor-ia-agent."""

import logging
import sys
import time
from datetime import datetime, timezone
from typing import Optional

import click

from . import __version__
from .collectors import COLLECTORS
from .config import (
    DEFAULT_SERVER_URL,
    DEFAULT_SYNC_INTERVAL_HOURS,
    MAX_SYNC_INTERVAL_HOURS,
    MIN_SYNC_INTERVAL_HOURS,
    AgentConfig,
    config_exists,
    load_config,
    save_config,
)
from .exceptions import MonitorError
from .models import CollectorResult
from .sender import MetricsSender


MIN_HOURS_BETWEEN_SENDS = 15

PRIVACY_NOTICE = """
Monitor IA Agent - Privacy notice

This agent collects usage metrics from your AI tools to build your
personalized assessment.

COLLECTED:
  - Number of sessions, tokens and time spent
  - Tools and models used
  - Task types (inferred locally)
  - Session summaries (encrypted before sending)

NOT COLLECTED:
  - The content of your conversations
  - Source code
  - File paths or working directories

Sensitive data is encrypted locally with AES-256-GCM before it is sent.
You can revoke consent at any time from the dashboard's privacy page.
"""


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def _load_or_exit() -> AgentConfig:
    try:
        return load_config()
    except MonitorError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _echo_summary(result: CollectorResult) -> None:
    """Print a short per-collector summary line or two."""
    metrics = result.metrics
    if 'sessionsCount' in metrics:
        click.echo(f"    -> {metrics['sessionsCount']} sessions")
    if metrics.get('totalTokens'):
        click.echo(f"    -> {metrics['totalTokens']:,} tokens")
    if metrics.get('encrypted'):
        click.echo("    -> sensitive data encrypted")
    prompting = metrics.get('prompting') or {}
    if prompting.get('totalPromptsAnalyzed'):
        click.echo(f"    -> prompting: {prompting['totalPromptsAnalyzed']} prompts analyzed")
    workflow = metrics.get('workflow')
    if workflow is not None:
        click.echo(
            f"    -> workflow: {workflow['totalSessionsAnalyzed']} sessions "
            f"(skills: {workflow['uniqueSkillsCount']}, @refs: {workflow['atReferencesCount']}, "
            f"with plan: {workflow['sessionsWithPlan']})"
        )


def run_collectors(enabled: list[str], encryption_key: Optional[str] = None) -> list[CollectorResult]:
    """
    Run the enabled collectors in order.

    Unknown names are warned about and skipped; a collector that raises is
    reported and skipped so the others still run.
    """
    results = []
    for name in enabled:
        collector = COLLECTORS.get(name)
        if collector is None:
            click.echo(f"Warning: unknown collector: {name}", err=True)
            continue

        click.echo(f"  Collecting: {name}...")
        try:
            result = collector(encryption_key=encryption_key)
        except Exception as e:
            click.echo(f"  Error in {name}: {e}", err=True)
            continue

        results.append(result)
        _echo_summary(result)

    return results


def _collect_and_send(config: AgentConfig) -> bool:
    click.echo(f"[{datetime.now():%Y-%m-%d %H:%M:%S}] Collecting...")
    results = run_collectors(config.enabled_collectors, config.encryption_key)
    click.echo(f"  {len(results)} results collected")

    if not results:
        return False

    with MetricsSender(config.server_url, config.auth_token) as sender:
        sent = sender.send(results)
    click.echo("  Metrics sent." if sent else "  Metrics could not be sent.", err=not sent)
    return sent


@click.group()
@click.version_option(__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose):
    """Monitor IA Agent - collect AI tool usage metrics for your assessment."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("token")
@click.argument("server_url", required=False, default=DEFAULT_SERVER_URL)
@click.option("--yes", "-y", is_flag=True, help="Accept the privacy notice without prompting")
def setup(token, server_url, yes):
    """Configure the agent with TOKEN (shows the privacy notice)."""
    if config_exists() and not yes:
        click.echo("The agent is already configured.")
        if not click.confirm("Reconfigure?", default=False):
            click.echo("Setup cancelled.")
            return

    if not yes:
        click.echo(PRIVACY_NOTICE)
        if not click.confirm("Do you want to continue?", default=False):
            click.echo("\nSetup cancelled. The agent was not configured.")
            return

    with MetricsSender(server_url, token) as sender:
        remote = sender.fetch_remote_config()

    if not remote:
        click.echo("Could not get configuration from the server, using defaults.")

    enabled = remote.get('enabledCollectors') or list(COLLECTORS)
    config = AgentConfig(
        server_url=server_url,
        auth_token=token,
        sync_interval_hours=DEFAULT_SYNC_INTERVAL_HOURS,
        enabled_collectors=list(enabled),
        encryption_key=remote.get('encryptionKey') or None,
        consent_given_at=_utc_now_iso(),
    )
    save_config(config)

    click.echo("\nAgent configured")
    click.echo(f"  Server: {config.server_url}")
    click.echo(f"  Collectors: {', '.join(config.enabled_collectors)}")
    click.echo(f"  Interval: {config.sync_interval_hours}h")
    click.echo(f"  Encryption: {'enabled' if config.encryption_key else 'disabled'}")
    click.echo("\nNext steps:")
    click.echo("  1. monitor-ia-agent run-once         (test it)")
    click.echo("  2. monitor-ia-agent service install  (run automatically)")


@main.command()
def run():
    """Collect and send every sync interval until interrupted."""
    config = _load_or_exit()
    click.echo("Monitor IA Agent started")
    click.echo(f"  Server: {config.server_url}")
    click.echo(f"  Interval: {config.sync_interval_hours}h")
    click.echo(f"  Collectors: {', '.join(config.enabled_collectors)}")
    click.echo(f"  Encryption: {'enabled' if config.encryption_key else 'disabled'}")

    try:
        while True:
            _collect_and_send(config)
            click.echo(f"\nNext run in {config.sync_interval_hours}h. Ctrl+C to stop.")
            time.sleep(config.sync_interval_hours * 3600)
    except KeyboardInterrupt:
        click.echo("\nStopped.")


@main.command("run-once")
def run_once():
    """Collect and send once, unless the last send was too recent."""
    config = _load_or_exit()

    hours = config.hours_since_last_send()
    if hours is not None and hours < MIN_HOURS_BETWEEN_SENDS:
        click.echo(
            f"[Monitor IA] Guard active: last send {hours:.1f}h ago. "
            f"Minimum {MIN_HOURS_BETWEEN_SENDS}h between sends."
        )
        return

    if _collect_and_send(config):
        config.last_sent_at = _utc_now_iso()
        save_config(config)


@main.command()
def status():
    """Show configuration and what the collectors currently see."""
    if not config_exists():
        click.echo("Agent not configured. Run: monitor-ia-agent setup <token>")
        return

    config = _load_or_exit()
    click.echo("Agent status:")
    click.echo(f"  Server: {config.server_url}")
    click.echo(f"  Collectors: {', '.join(config.enabled_collectors)}")
    click.echo(f"  Interval: {config.sync_interval_hours}h")
    click.echo(f"  Encryption: {'enabled' if config.encryption_key else 'disabled'}")
    if config.consent_given_at:
        click.echo(f"  Consent given: {config.consent_given_at}")
    if config.last_sent_at:
        click.echo(f"  Last sent: {config.last_sent_at}")

    click.echo("\nCurrent data:")
    for result in run_collectors(config.enabled_collectors, config.encryption_key):
        click.echo(f"\n  {result.tool}:")
        for key, value in result.metrics.items():
            if key == 'encrypted':
                click.echo(f"    {key}: [encrypted data]")
            elif isinstance(value, list):
                click.echo(f"    {key}: [{len(value)} items]")
            else:
                click.echo(f"    {key}: {value}")


@main.group()
def service():
    """Manage the scheduled background job."""


@service.command("install")
def service_install_cmd():
    """Install the agent as a scheduled job."""
    from .service import service_install

    config = _load_or_exit()
    try:
        lines = service_install(config.sync_interval_hours)
    except MonitorError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    for line in lines:
        click.echo(line)


@service.command("uninstall")
def service_uninstall_cmd():
    """Remove the scheduled job."""
    from .service import service_uninstall

    try:
        lines = service_uninstall()
    except MonitorError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    for line in lines:
        click.echo(line)


@service.command("status")
def service_status_cmd():
    """Show whether the scheduled job is installed."""
    from .service import service_status

    try:
        lines = service_status()
    except MonitorError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    for line in lines:
        click.echo(line)


@main.group("config")
def config_group():
    """Change agent settings."""


@config_group.command()
@click.argument("hours", type=int)
def interval(hours):
    """Set the collection interval in HOURS (1-24)."""
    if not MIN_SYNC_INTERVAL_HOURS <= hours <= MAX_SYNC_INTERVAL_HOURS:
        click.echo(
            f"Error: interval must be between {MIN_SYNC_INTERVAL_HOURS} "
            f"and {MAX_SYNC_INTERVAL_HOURS} hours.",
            err=True,
        )
        sys.exit(1)

    config = _load_or_exit()
    config.sync_interval_hours = hours
    save_config(config)
    click.echo(f"Interval set to {hours}h")
    click.echo("If the service is installed, reinstall it to apply: monitor-ia-agent service install")


if __name__ == "__main__":
    main()
