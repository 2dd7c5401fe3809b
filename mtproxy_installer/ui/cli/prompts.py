"""
Prompters — where the install use case gets its answers.

``ClickPrompter`` asks on the terminal. ``AnswersPrompter`` replays an
answers file for unattended runs.
"""

from __future__ import annotations

import click

from mtproxy_installer.core.errors import ValidationFailure
from mtproxy_installer.core.models.installation import DetectedInstallation
from mtproxy_installer.core.models.plan import InstallAnswers, UserCredential
from mtproxy_installer.core.services.credentials import CredentialBook
from mtproxy_installer.core.services.planning import validate_answers
from mtproxy_installer.core.services.validation import default_tls_domain, validate_hostlike
from mtproxy_installer.core.use_cases.install import InstallPrompter

_PORT = click.IntRange(1, 65535)


def _show_detected(detected: DetectedInstallation) -> None:
    click.secho("\n⚠️  An existing installation was found:", fg="yellow", bold=True)
    for directory in detected.directories:
        click.echo(f"   📁 {directory}")
    for unit in detected.unit_files:
        click.echo(f"   ⚙️  {unit}")
    if detected.container_present:
        click.echo("   🐳 container present")
    if detected.image_present:
        click.echo("   📦 image present")
    click.echo()


class ClickPrompter(InstallPrompter):
    """Interactive prompter on the controlling terminal."""

    def confirm_replace(self, detected: DetectedInstallation) -> bool:
        _show_detected(detected)
        choice = click.prompt(
            "Replace it (everything listed above is removed) or cancel?",
            type=click.Choice(["replace", "cancel"]),
            default="cancel",
        )
        return choice == "replace"

    def collect_users(self) -> tuple[UserCredential, ...]:
        click.secho("\n👤 Users (leave empty to finish)", fg="cyan", bold=True)
        book = CredentialBook()
        while True:
            name = click.prompt(
                f"   Username #{len(book) + 1}", default="", show_default=False
            ).strip()
            if not name:
                if len(book):
                    break
                click.secho("   At least one user is required.", fg="yellow")
                continue
            try:
                credential = book.add(name)
            except ValidationFailure as e:
                click.secho(f"   {e}", fg="yellow")
                continue
            click.echo(f"   ✓ {credential.username}")
        return book.credentials

    def collect_answers(self) -> InstallAnswers:
        click.secho("\n🌐 Server", fg="cyan", bold=True)
        port = click.prompt("   Listen port", type=_PORT, default=443)

        while True:
            announce = click.prompt("   Public IP address or hostname", default="", show_default=False)
            try:
                announce = validate_hostlike(announce, "announce address")
                break
            except ValidationFailure as e:
                click.secho(f"   {e}", fg="yellow")

        while True:
            tls_domain = click.prompt("   TLS masking domain", default=default_tls_domain(announce))
            try:
                tls_domain = validate_hostlike(tls_domain, "TLS domain")
                break
            except ValidationFailure as e:
                click.secho(f"   {e}", fg="yellow")

        host_port = click.prompt("   Host port to publish", type=_PORT, default=port)
        create_service = click.confirm("   Create a systemd service?", default=True)
        auto_update = click.confirm("   Enable daily auto-update?", default=True)

        return InstallAnswers(
            port=port,
            announce_ip=announce,
            tls_domain=tls_domain,
            host_port=host_port,
            create_service=create_service,
            auto_update=auto_update,
        )

    def progress(self, message: str) -> None:
        click.secho(f"⏳ {message}", fg="cyan", err=True)


class AnswersPrompter(InstallPrompter):
    """Replays answers loaded from a file, without touching the terminal.

    The answers are validated on construction, so a bad file fails
    before the host is inspected or changed.
    """

    def __init__(self, answers: InstallAnswers, echo: bool = True):
        validate_answers(answers)
        self.answers = answers
        self.echo = echo

    def confirm_replace(self, detected: DetectedInstallation) -> bool:
        if self.echo:
            _show_detected(detected)
        return self.answers.replace_existing

    def collect_users(self) -> tuple[UserCredential, ...]:
        book = CredentialBook()
        for username in self.answers.users:
            book.add(username)
        return book.credentials

    def collect_answers(self) -> InstallAnswers:
        return self.answers

    def progress(self, message: str) -> None:
        if self.echo:
            click.secho(f"⏳ {message}", fg="cyan", err=True)
