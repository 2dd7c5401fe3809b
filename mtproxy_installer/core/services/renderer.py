"""
Template renderer — config and manifest artifacts from base templates.

No template language: the config template is parsed into a map of
``(section, key) -> line numbers``, every required declaration is checked
to appear exactly once, and the file is re-emitted with those lines
replaced and the credential table filled in. The manifest has a single
substitution point, the default port mapping token.

Both artifacts are rendered and checked (TOML / YAML) before either is
written, so a malformed template never leaves a half-configured install.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import tomllib
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from mtproxy_installer.core.data import TEMPLATES_DIR
from mtproxy_installer.core.errors import LaunchFailed, TemplateMalformed
from mtproxy_installer.core.models.identity import ServiceIdentity
from mtproxy_installer.core.models.installation import GeneratedFile, RenderedArtifacts
from mtproxy_installer.core.models.plan import InstallationPlan

logger = logging.getLogger(__name__)

# ── Substitution points ─────────────────────────────────────────

USERS_LIST = ("", "show_link")
LISTEN_PORT = ("server", "port")
ANNOUNCE_ADDRESS = ("server.listeners", "announce_ip")
TLS_DOMAIN = ("censorship", "tls_domain")
REQUIRED_DECLARATIONS = (USERS_LIST, LISTEN_PORT, ANNOUNCE_ADDRESS, TLS_DOMAIN)

CREDENTIALS_SECTION = "access.users"
DEFAULT_PORT_MAPPING = "443:443"

_SECTION_RE = re.compile(r"^\[\[?\s*([A-Za-z0-9_.-]+)\s*\]\]?\s*(#.*)?$")
_DECLARATION_RE = re.compile(r"^([A-Za-z0-9_-]+)\s*=")


@dataclass
class TemplateIndex:
    """Where each declaration and section header sits in a config template."""

    lines: list[str]
    declarations: dict[tuple[str, str], list[int]] = field(default_factory=lambda: defaultdict(list))
    sections: dict[str, list[int]] = field(default_factory=lambda: defaultdict(list))

    def single_declaration(self, section: str, key: str) -> int:
        """Line number of the one declaration of *key* in *section*.

        Raises:
            TemplateMalformed: absent or duplicated.
        """
        found = self.declarations.get((section, key), [])
        where = f"[{section}]" if section else "the top level"
        if not found:
            raise TemplateMalformed(f"Config template has no {key!r} declaration in {where}.")
        if len(found) > 1:
            raise TemplateMalformed(
                f"Config template declares {key!r} in {where} {len(found)} times; expected exactly once."
            )
        return found[0]

    def single_section(self, section: str) -> int:
        found = self.sections.get(section, [])
        if len(found) != 1:
            raise TemplateMalformed(
                f"Config template must contain exactly one [{section}] section, found {len(found)}."
            )
        return found[0]

    def section_body(self, header: int) -> range:
        """Line numbers from just after *header* up to the next section header."""
        end = len(self.lines)
        for start_lines in self.sections.values():
            for n in start_lines:
                if header < n < end:
                    end = n
        return range(header + 1, end)


def parse_template(text: str) -> TemplateIndex:
    """Index the declarations and section headers of a TOML-style template."""
    index = TemplateIndex(lines=text.splitlines())
    section = ""
    for n, raw in enumerate(index.lines):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        header = _SECTION_RE.match(line)
        if header:
            section = header.group(1)
            index.sections[section].append(n)
            continue
        declaration = _DECLARATION_RE.match(raw)
        if declaration:
            index.declarations[(section, declaration.group(1))].append(n)
    return index


def _quote(value: str) -> str:
    # Values are validated upstream: no quotes, backslashes or control chars
    return f'"{value}"'


def render_config(template: str, plan: InstallationPlan) -> str:
    """Render the service config from *template* and *plan*.

    Raises:
        TemplateMalformed: a required declaration or the credential
            section is absent or duplicated, or the result is not TOML.
    """
    index = parse_template(template)
    replacements = {
        USERS_LIST: "[" + ", ".join(_quote(u) for u in plan.usernames) + "]",
        LISTEN_PORT: str(plan.listen_port),
        ANNOUNCE_ADDRESS: _quote(plan.announce_address),
        TLS_DOMAIN: _quote(plan.tls_domain),
    }
    lines = list(index.lines)
    for (section, key), value in replacements.items():
        n = index.single_declaration(section, key)
        lines[n] = f"{key} = {value}"

    header = index.single_section(CREDENTIALS_SECTION)
    sample_entries = {
        n for n in index.section_body(header)
        if _DECLARATION_RE.match(index.lines[n])
    }
    credential_lines = [user.config_line() for user in plan.users]

    output: list[str] = []
    for n, line in enumerate(lines):
        if n in sample_entries:
            continue
        output.append(line)
        if n == header:
            output.extend(credential_lines)

    rendered = "\n".join(output) + "\n"
    try:
        tomllib.loads(rendered)
    except tomllib.TOMLDecodeError as e:
        raise TemplateMalformed(f"Rendered config is not valid TOML: {e}") from e
    return rendered


def render_manifest(template: str, plan: InstallationPlan, identity: ServiceIdentity) -> str:
    """Render the compose manifest: substitute the default port mapping.

    Raises:
        TemplateMalformed: the port token is absent or repeated, or the
            result does not declare the service's container.
    """
    count = template.count(DEFAULT_PORT_MAPPING)
    if count != 1:
        raise TemplateMalformed(
            f"Manifest template must contain the port mapping {DEFAULT_PORT_MAPPING!r} "
            f"exactly once, found {count}."
        )
    rendered = template.replace(DEFAULT_PORT_MAPPING, plan.port_mapping)

    try:
        data = yaml.safe_load(rendered)
    except yaml.YAMLError as e:
        raise TemplateMalformed(f"Rendered manifest is not valid YAML: {e}") from e
    services = data.get("services") if isinstance(data, dict) else None
    if not isinstance(services, dict) or not services:
        raise TemplateMalformed("Manifest template has no services.")
    names = {
        svc.get("container_name", key)
        for key, svc in services.items()
        if isinstance(svc, dict)
    }
    if identity.container_name not in names:
        raise TemplateMalformed(
            f"Manifest template does not declare container {identity.container_name!r}."
        )
    return rendered


def _load_template(templates_dir: Path, name: str) -> str:
    path = templates_dir / name
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise TemplateMalformed(f"Cannot read template {path}: {e}") from e


def render_artifacts(
    identity: ServiceIdentity,
    plan: InstallationPlan,
    templates_dir: Path = TEMPLATES_DIR,
) -> list[GeneratedFile]:
    """Render both artifacts in memory. Nothing is written."""
    config = render_config(_load_template(templates_dir, identity.config_file), plan)
    manifest = render_manifest(_load_template(templates_dir, identity.manifest_file), plan, identity)
    return [
        GeneratedFile(path=identity.config_path, content=config, reason="service config"),
        GeneratedFile(path=identity.manifest_path, content=manifest, reason="compose manifest"),
    ]


def write_file(generated: GeneratedFile, mode: int = 0o644) -> Path:
    """Write *generated* atomically (temp file in the same dir, then rename)."""
    path = generated.path
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(generated.content)
        tmp.chmod(mode)
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("Wrote %s (%s)", path, generated.reason)
    return path


def write_artifacts(
    identity: ServiceIdentity,
    plan: InstallationPlan,
    templates_dir: Path = TEMPLATES_DIR,
) -> RenderedArtifacts:
    """Render, then write, the config and manifest into the install dir.

    Raises:
        TemplateMalformed: see ``render_artifacts``.
        LaunchFailed: the install dir or a file in it cannot be written.
    """
    config, manifest = render_artifacts(identity, plan, templates_dir)
    try:
        # The config holds user secrets
        write_file(config, mode=0o600)
        write_file(manifest, mode=0o644)
    except OSError as e:
        raise LaunchFailed(f"Cannot write artifacts to {identity.install_dir}: {e}") from e
    logger.info("Artifacts written to %s", identity.install_dir)
    return RenderedArtifacts(config_path=config.path, manifest_path=manifest.path)
