"""Nginx installer."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from trusttls.installers.base import Installer

if TYPE_CHECKING:
    from trusttls.store.certificates import CertificatePaths

_SSL_LISTEN_RE = re.compile(r"^\s*listen\s+(\d+)\s+ssl;", re.IGNORECASE)
_SSL_CERT_RE = re.compile(r"^\s*ssl_certificate\s+([^;]+);", re.IGNORECASE)

_SERVER_TEMPLATE = """\
server {{
    listen 443 ssl;
    server_name {domain};
    ssl_certificate {fullchain};
    ssl_certificate_key {key};
    ssl_trusted_certificate {chain};
}}
"""


class NginxInstaller(Installer):
    """Detect and write Nginx server blocks."""

    server_type = "nginx"
    default_config_dirs = (
        "/etc/nginx/sites-enabled",
        "/etc/nginx/conf.d",
        "/etc/nginx/sites-available",
        "/usr/local/etc/nginx/servers",
    )
    default_output_dirs = (
        "/etc/nginx/conf.d",
        "/etc/nginx/sites-enabled",
        "/usr/local/etc/nginx/servers",
    )
    reload_commands = (
        ("nginx", "-s", "reload"),
        ("service", "nginx", "reload"),
    )

    server_name_re = re.compile(r"^\s*server_name\s+([^;]+);", re.IGNORECASE)
    webroot_re = re.compile(r"^\s*root\s+([^;]+);", re.IGNORECASE)

    def _line_enables_ssl(self, line: str) -> bool:
        return bool(_SSL_LISTEN_RE.match(line) or _SSL_CERT_RE.match(line))

    def render(self, domain: str, paths: CertificatePaths) -> str:
        return _SERVER_TEMPLATE.format(
            domain=domain,
            fullchain=paths.fullchain,
            key=paths.key,
            chain=paths.chain,
        )
