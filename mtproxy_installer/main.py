"""
MTProto proxy installer — CLI entrypoint.

Usage:
    mtproxy-install                       # interactive install
    mtproxy-install --answers answers.yml # unattended install
    mtproxy-install --uninstall
    python -m mtproxy_installer --help
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from mtproxy_installer import __version__
from mtproxy_installer.adapters.base import ContainerRuntime, InitSystem
from mtproxy_installer.core.errors import InstallerError
from mtproxy_installer.core.models.identity import ServiceIdentity
from mtproxy_installer.core.observability.logging_config import resolve_level, setup_logging


def make_identity() -> ServiceIdentity:
    return ServiceIdentity()


def make_runtime() -> ContainerRuntime:
    from mtproxy_installer.adapters.containers.docker import DockerRuntime

    return DockerRuntime()


def make_init_system() -> InitSystem:
    from mtproxy_installer.adapters.initsys.systemd import SystemdInitSystem

    return SystemdInitSystem()


@click.command()
@click.version_option(version=__version__, prog_name="mtproxy-install")
@click.option("--uninstall", is_flag=True, help="Remove the proxy service and everything it installed.")
@click.option(
    "--answers",
    "answers_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="YAML answers file for an unattended install.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
def cli(
    uninstall: bool,
    answers_path: str | None,
    as_json: bool,
    verbose: bool,
    quiet: bool,
    debug: bool,
) -> None:
    """Install, replace or remove a containerized MTProto proxy (telemt)."""
    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(
            debug=debug,
            verbose=verbose,
            quiet=quiet,
            env_level=os.environ.get("MTPROXY_LOG_LEVEL"),
        ),
        log_file=os.environ.get("MTPROXY_LOG_FILE"),
        log_file_level=os.environ.get("MTPROXY_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )

    if uninstall and answers_path:
        raise click.UsageError("--answers cannot be combined with --uninstall.")

    try:
        if uninstall:
            _uninstall(as_json, quiet)
        else:
            _install(answers_path, as_json, quiet)
    except InstallerError as e:
        if as_json:
            click.echo(json.dumps({"error": str(e), "type": type(e).__name__}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(e.exit_code)


def _install(answers_path: str | None, as_json: bool, quiet: bool) -> None:
    from mtproxy_installer.core.use_cases.install import InstallPrompter, run_install
    from mtproxy_installer.ui.cli.prompts import AnswersPrompter, ClickPrompter

    prompter: InstallPrompter
    if answers_path:
        from mtproxy_installer.core.config.loader import load_answers

        prompter = AnswersPrompter(load_answers(Path(answers_path)), echo=not (as_json or quiet))
    else:
        prompter = ClickPrompter()

    summary = run_install(prompter, make_runtime(), make_init_system(), make_identity())

    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
        return

    report = summary.reconcile_report
    if report is not None and not report.clean:
        click.secho("\n⚠️  Some leftovers could not be removed:", fg="yellow")
        for failure in report.failures:
            click.echo(f"   • {failure.describe()}")

    click.secho("\n✅ MTProto proxy installed", fg="green", bold=True)
    click.echo(f"   📁 {summary.identity.install_dir}")
    for path in summary.artifacts.all_paths:
        click.echo(f"   📄 {path}")
    click.echo(f"   🔌 {summary.plan.port_mapping}  ({summary.plan.announce_address})")
    click.echo(f"   🎭 {summary.plan.tls_domain}")

    click.echo()
    click.secho("   Users:", fg="white", bold=True)
    for user in summary.plan.users:
        click.echo(f"     • {user.username}  {user.secret}")

    if not quiet:
        click.echo()
        for hint in summary.hints:
            click.echo(f"   {hint}")
    click.echo()


def _uninstall(as_json: bool, quiet: bool) -> None:
    from mtproxy_installer.core.use_cases.uninstall import run_uninstall

    result = run_uninstall(make_runtime(), make_init_system(), make_identity())

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    report = result.report
    if result.nothing_found or report is None:
        click.secho("✅ Nothing to uninstall", fg="green")
        return

    if not quiet:
        for directory in report.removed_directories:
            click.echo(f"   🗑  {directory}")
        for unit in report.removed_unit_files:
            click.echo(f"   🗑  {unit}")

    if report.clean:
        click.secho("✅ MTProto proxy removed", fg="green", bold=True)
    else:
        click.secho("⚠️  Removed with leftovers:", fg="yellow", bold=True)
        for failure in report.failures:
            click.echo(f"   • {failure.describe()}")


if __name__ == "__main__":
    cli()
