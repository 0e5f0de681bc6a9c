"""Apache httpd installer."""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from trusttls.installers.base import Installer

if TYPE_CHECKING:
    from trusttls.store.certificates import CertificatePaths

log = logging.getLogger(__name__)

_CONFIG_DIRS = (
    "/etc/apache2/sites-enabled",
    "/etc/apache2/sites-available",
    "/etc/httpd/conf.d",
    "/etc/apache2/vhosts.d",
)
_MACOS_CONFIG_DIRS = (
    "/etc/apache2/other",
    "/private/etc/apache2/other",
)

_SSL_ENGINE_RE = re.compile(r"^\s*SSLEngine\s+(.+)$", re.IGNORECASE)

_VHOST_TEMPLATE = """\
<IfModule mod_ssl.c>
<VirtualHost *:443>
    ServerName {domain}
    SSLEngine on
    SSLCertificateFile {cert}
    SSLCertificateKeyFile {key}
    SSLCertificateChainFile {chain}
</VirtualHost>
</IfModule>
"""


class ApacheInstaller(Installer):
    """Detect and write Apache virtual hosts."""

    server_type = "apache"
    default_config_dirs = _CONFIG_DIRS + (_MACOS_CONFIG_DIRS if sys.platform == "darwin" else ())
    default_output_dirs = (
        "/etc/apache2/sites-available",
        "/etc/httpd/conf.d",
        "/etc/apache2/vhosts.d",
    )
    reload_commands = (
        ("apache2ctl", "graceful"),
        ("apachectl", "graceful"),
        ("service", "apache2", "reload"),
        ("service", "httpd", "reload"),
    )

    server_name_re = re.compile(r"^\s*ServerName\s+(.+)$", re.IGNORECASE)
    webroot_re = re.compile(r"^\s*DocumentRoot\s+(.+)$", re.IGNORECASE)

    def _line_enables_ssl(self, line: str) -> bool:
        match = _SSL_ENGINE_RE.match(line)
        return match is not None and match.group(1).strip().lower() == "on"

    def render(self, domain: str, paths: CertificatePaths) -> str:
        return _VHOST_TEMPLATE.format(
            domain=domain,
            cert=paths.cert,
            key=paths.key,
            chain=paths.chain,
        )

    def _after_write(self, path: Path) -> None:
        # Debian layout: enable the site by linking it into sites-enabled.
        if path.parent.name != "sites-available":
            return
        link = path.parent.parent / "sites-enabled" / path.name
        link.parent.mkdir(parents=True, exist_ok=True, mode=0o755)
        if not link.exists() and not link.is_symlink():
            link.symlink_to(path)
            log.debug("Enabled %s", link)
