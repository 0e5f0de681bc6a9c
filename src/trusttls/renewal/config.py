"""Per-domain renewal configuration records.

One YAML file per domain under the renewal directory; the domain is the
file key, so saving twice for the same domain replaces the record.

Older records selected DigiCert through ``method: digicert`` and named
the generic ACME provider ``letsencrypt``.  Both forms are normalised on
load so that ``provider`` is the only discriminator and ``method`` only
names the challenge type.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields, replace

import yaml

from trusttls.core.types import ChallengeMethod, ProviderName
from trusttls.errors import Corrupt, ValidationError
from trusttls.store.paths import path_component

log = logging.getLogger(__name__)

_LEGACY_PROVIDER_ALIASES = {
    "": ProviderName.ACME,
    "letsencrypt": ProviderName.ACME,
    "le": ProviderName.ACME,
}

_LEGACY_METHOD_PROVIDERS = {
    "digicert": ProviderName.DIGICERT_REST,
    "digicert-acme": ProviderName.DIGICERT_ACME,
}


@dataclass(frozen=True)
class RenewalConfig:
    """Everything needed to re-issue one domain's certificate."""

    domain: str
    email: str = ""
    server: str = ""
    provider: str = ProviderName.ACME
    method: str = ChallengeMethod.HTTP_01
    webroot: str = ""
    key_type: str = ""
    key_size: int = 0
    targets: tuple[str, ...] = field(default_factory=tuple)
    base_dir: str = ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data["provider"] = str(self.provider)
        data["method"] = str(self.method)
        data["targets"] = list(self.targets)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> RenewalConfig:
        """Build a config from a parsed YAML mapping, normalising legacy forms.

        Raises
        ------
        Corrupt
            If *data* has no domain or a field has the wrong shape.

        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        if not values.get("domain"):
            msg = "renewal record has no domain"
            raise Corrupt(msg)
        try:
            path_component(str(values["domain"]), "domain")
        except ValidationError as exc:
            raise Corrupt(exc.detail) from exc

        targets = values.get("targets") or ()
        if isinstance(targets, str):
            targets = (targets,)
        if not isinstance(targets, (list, tuple)):
            msg = f"renewal record for {values['domain']}: targets must be a list"
            raise Corrupt(msg)
        values["targets"] = tuple(str(t) for t in targets)

        try:
            values["key_size"] = int(values.get("key_size") or 0)
        except (TypeError, ValueError) as exc:
            msg = f"renewal record for {values['domain']}: key_size must be an integer"
            raise Corrupt(msg) from exc

        for name in ("domain", "email", "server", "provider", "method", "webroot", "key_type", "base_dir"):
            if name in values:
                values[name] = str(values[name])

        return normalise(cls(**values))


def normalise(config: RenewalConfig) -> RenewalConfig:
    """Return *config* with the provider tag as the single discriminator."""
    method = (config.method or "").strip().lower()
    provider = (config.provider or "").strip().lower()

    if method in _LEGACY_METHOD_PROVIDERS:
        log.debug("Renewal record for %s uses legacy method %r", config.domain, method)
        provider = _LEGACY_METHOD_PROVIDERS[method]
        method = ChallengeMethod.HTTP_01
    provider = _LEGACY_PROVIDER_ALIASES.get(provider, provider)

    return replace(
        config,
        provider=provider,
        method=method or ChallengeMethod.HTTP_01,
    )


def dump_yaml(config: RenewalConfig) -> str:
    return yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=False)


def parse_yaml(text: str, *, source: str = "<string>") -> RenewalConfig:
    """Parse one renewal record.

    Raises
    ------
    Corrupt
        If *text* is not YAML or not a mapping with a domain.

    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"{source} is not valid YAML: {exc}"
        raise Corrupt(msg) from exc
    if not isinstance(data, dict):
        msg = f"{source} does not contain a mapping"
        raise Corrupt(msg)
    return RenewalConfig.from_dict(data)
