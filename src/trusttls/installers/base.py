"""Abstract base class for web server installers.

An installer reads a web server's virtual host files to find the
document root and TLS status for a domain, and writes a TLS virtual host
that points at the live certificate files.

Scanning is line based: each concrete installer supplies regular
expressions for the server name, document root and TLS directives, and
the base class walks the candidate configuration directories.
"""

from __future__ import annotations

import abc
import logging
import re
import subprocess
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

from trusttls.errors import InstallError

if TYPE_CHECKING:
    from trusttls.store.certificates import CertificatePaths, CertificateStore

log = logging.getLogger(__name__)

_RELOAD_TIMEOUT_SECONDS = 60

Runner = Callable[[Sequence[str]], int]


def run_command(argv: Sequence[str]) -> int:
    """Run *argv* and return its exit status, or ``127`` if it is missing."""
    try:
        result = subprocess.run(  # noqa: S603
            list(argv),
            check=False,
            timeout=_RELOAD_TIMEOUT_SECONDS,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        return 127
    except subprocess.TimeoutExpired:
        log.warning("%s timed out after %ds", argv[0], _RELOAD_TIMEOUT_SECONDS)
        return 124
    if result.returncode != 0:
        log.debug("%s exited %d: %s", " ".join(argv), result.returncode, result.stderr.strip())
    return result.returncode


@dataclass(frozen=True)
class VhostScan:
    """What one configuration file says about a domain."""

    path: Path
    matches_domain: bool
    webroot: str
    ssl_enabled: bool


class Installer(abc.ABC):
    """Base class for web server installers.

    Parameters
    ----------
    certificates:
        Store whose live paths are written into the TLS virtual host.
    config_dirs:
        Directories scanned for virtual hosts; platform defaults when
        omitted.
    output_dir:
        Directory the TLS virtual host is written to; the first existing
        default when omitted.
    assume_yes:
        Write configuration without operator confirmation.
    runner:
        Executes reload commands; returns the exit status.

    """

    server_type: ClassVar[str]
    default_config_dirs: ClassVar[tuple[str, ...]]
    default_output_dirs: ClassVar[tuple[str, ...]]
    reload_commands: ClassVar[tuple[tuple[str, ...], ...]]

    server_name_re: ClassVar[re.Pattern[str]]
    webroot_re: ClassVar[re.Pattern[str]]

    def __init__(  # noqa: PLR0913
        self,
        certificates: CertificateStore,
        *,
        config_dirs: Sequence[str | Path] | None = None,
        output_dir: str | Path | None = None,
        assume_yes: bool = False,
        runner: Runner | None = None,
    ) -> None:
        self._certificates = certificates
        self._config_dirs = [Path(d) for d in (config_dirs or self.default_config_dirs)]
        self._output_dir = Path(output_dir) if output_dir else None
        self.assume_yes = assume_yes
        self._runner = runner or run_command

    # -- scanning -------------------------------------------------------------

    def _config_files(self) -> Iterator[Path]:
        for directory in self._config_dirs:
            if not directory.is_dir():
                continue
            for path in sorted(directory.iterdir()):
                if path.is_file():
                    yield path

    def _names_on_line(self, line: str) -> list[str]:
        match = self.server_name_re.match(line)
        if match is None:
            return []
        return match.group(1).split()

    @abc.abstractmethod
    def _line_enables_ssl(self, line: str) -> bool:
        """Return ``True`` if *line* turns TLS on for its block."""

    def scan_file(self, path: Path, domain: str) -> VhostScan:
        """Scan one configuration file for *domain*."""
        matches = False
        webroot = ""
        ssl_enabled = False
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            log.debug("Cannot read %s", path, exc_info=True)
            return VhostScan(path, matches_domain=False, webroot="", ssl_enabled=False)

        wanted = domain.lower()
        for raw in text.splitlines():
            line = raw.strip()
            if any(name.lower() == wanted for name in self._names_on_line(line)):
                matches = True
            root = self.webroot_re.match(line)
            if root is not None:
                webroot = root.group(1).strip().strip('"')
            if self._line_enables_ssl(line):
                ssl_enabled = True
        return VhostScan(path, matches_domain=matches, webroot=webroot, ssl_enabled=ssl_enabled)

    def _scans(self, domain: str) -> Iterator[VhostScan]:
        for path in self._config_files():
            scan = self.scan_file(path, domain)
            if scan.matches_domain:
                yield scan

    # -- Installer capability ---------------------------------------------------

    def webroot(self, domain: str) -> str:
        """Return the document root serving *domain*, or ``""``."""
        return next((s.webroot for s in self._scans(domain) if s.webroot), "")

    def is_ssl_enabled(self, domain: str) -> bool:
        return any(s.ssl_enabled for s in self._scans(domain))

    def detect_vhost(self, domain: str) -> tuple[str, str]:
        """Return ``(config_path, server_type)``; the path is ``""`` if none."""
        scan = next(self._scans(domain), None)
        return (str(scan.path) if scan else "", self.server_type)

    def output_dir(self) -> Path:
        if self._output_dir is not None:
            return self._output_dir
        for candidate in self.default_output_dirs:
            if Path(candidate).is_dir():
                return Path(candidate)
        return Path(self.default_output_dirs[0])

    def output_path(self, domain: str) -> Path:
        return self.output_dir() / f"{domain}-le-ssl.conf"

    @abc.abstractmethod
    def render(self, domain: str, paths: CertificatePaths) -> str:
        """Return the TLS virtual host configuration for *domain*."""

    def install(self, domain: str) -> Path:
        """Write the TLS virtual host for *domain* and reload the server.

        Raises
        ------
        InstallError
            If confirmation is required or the file cannot be written.

        """
        if not self.assume_yes:
            msg = (
                f"confirmation required: re-run with --yes to write "
                f"{self.server_type} TLS configuration for {domain}"
            )
            raise InstallError(msg)

        conf = self.render(domain, self._certificates.paths(domain))
        out = self.output_path(domain)
        try:
            out.parent.mkdir(parents=True, exist_ok=True, mode=0o755)
            out.write_text(conf, encoding="utf-8")
            out.chmod(0o644)
            self._after_write(out)
        except OSError as exc:
            msg = f"failed to write {self.server_type} configuration {out}: {exc}"
            raise InstallError(msg) from exc

        log.info(
            "Installed %s TLS configuration for %s at %s",
            self.server_type,
            domain,
            out,
            extra={"domain": domain},
        )
        self.reload()
        return out

    def _after_write(self, path: Path) -> None:
        """Hook for installers that must enable the written file."""

    def reload(self) -> bool:
        """Try each reload command until one succeeds."""
        for argv in self.reload_commands:
            if self._runner(argv) == 0:
                log.info("Reloaded %s with %s", self.server_type, " ".join(argv))
                return True
        log.warning("Could not reload %s; reload it manually", self.server_type)
        return False
