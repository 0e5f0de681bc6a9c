"""Tests for trusttls.renewal.engine."""

from __future__ import annotations

import stat
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from trusttls.core.deadline import Deadline
from trusttls.errors import IssuanceFailed, NetworkError, RenewalError, ValidationError
from trusttls.providers.base import CertificateResource
from trusttls.renewal.config import RenewalConfig
from trusttls.renewal.engine import RenewalEngine
from trusttls.store.certificates import CertificateStore
from trusttls.store.credentials import CredentialStore

_NOW = datetime(2026, 5, 1, tzinfo=UTC)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeProvider:
    def __init__(self, cert_factory, error: Exception | None = None) -> None:
        self.cert_factory = cert_factory
        self.error = error
        self.calls = []

    def obtain_certificate(self, domains, *, deadline=None):
        self.calls.append((list(domains), deadline))
        if self.error is not None:
            raise self.error
        not_after = _NOW + timedelta(days=90)
        return CertificateResource(
            domain=domains[0],
            certificate=self.cert_factory(domains[0], not_after=not_after),
            issuer_certificate=self.cert_factory("Intermediate"),
            private_key=b"KEY",
        )


@pytest.fixture()
def engine_factory(settings, cert_factory):
    def factory(providers: dict | None = None, **kwargs):
        providers = providers or {}
        default = FakeProvider(cert_factory)

        def provider_factory(config):
            return providers.get(config.domain, default)

        kwargs.setdefault("now", lambda: _NOW)
        engine = RenewalEngine(settings, provider_factory=provider_factory, **kwargs)
        engine.default_provider = default
        return engine

    return factory


def _config(domain: str, **overrides) -> RenewalConfig:
    values = {
        "domain": domain,
        "email": "ops@example.com",
        "server": "https://acme.test/dir",
        "webroot": "/var/www",
    }
    values.update(overrides)
    return RenewalConfig(**values)


def _store_cert(engine, cert_factory, domain, days_left):
    resource = CertificateResource(
        domain=domain,
        certificate=cert_factory(domain, not_after=_NOW + timedelta(days=days_left)),
        issuer_certificate=b"",
    )
    CertificateStore(engine.base_dir).save(domain, resource)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestSave:
    def test_writes_one_file_per_domain(self, engine_factory):
        engine = engine_factory()
        path = engine.save(_config("example.com"))

        assert path == engine.renewal_dir / "example.com.yaml"
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        loaded = engine.load(path)
        assert loaded.domain == "example.com"
        assert loaded.base_dir == str(engine.base_dir)

    def test_overwrite_no_merge(self, engine_factory):
        engine = engine_factory()
        engine.save(_config("example.com", targets=("nginx",), webroot="/a"))
        engine.save(_config("example.com", webroot="/b"))

        assert len(engine.list_configs()) == 1
        loaded = engine.load_domain("example.com")
        assert loaded.webroot == "/b"
        assert loaded.targets == ()

    def test_domain_required(self, engine_factory):
        with pytest.raises(ValidationError):
            engine_factory().save(_config(""))

    @pytest.mark.parametrize("domain", ["../x", "a/b", ".."])
    def test_domain_must_be_one_path_component(self, engine_factory, domain):
        engine = engine_factory()
        with pytest.raises(ValidationError):
            engine.save(_config(domain))
        assert not (engine.renewal_dir.parent / "x.yaml").exists()
        assert engine.list_configs() == []

    def test_list_configs_ignores_other_files(self, engine_factory):
        engine = engine_factory()
        engine.save(_config("b.test"))
        engine.save(_config("a.test"))
        (engine.renewal_dir / "notes.txt").write_text("x")
        assert [p.name for p in engine.list_configs()] == ["a.test.yaml", "b.test.yaml"]

    def test_list_configs_missing_dir(self, engine_factory):
        assert engine_factory().list_configs() == []


# ---------------------------------------------------------------------------
# Due computation
# ---------------------------------------------------------------------------


class TestIsDue:
    def test_29_days_left_is_due(self, engine_factory, cert_factory):
        engine = engine_factory()
        _store_cert(engine, cert_factory, "example.com", 29)
        assert engine.is_due(_config("example.com")) is True

    def test_31_days_left_is_not_due(self, engine_factory, cert_factory):
        engine = engine_factory()
        _store_cert(engine, cert_factory, "example.com", 31)
        assert engine.is_due(_config("example.com")) is False

    def test_missing_certificate_is_due(self, engine_factory):
        assert engine_factory().is_due(_config("example.com")) is True

    def test_invalid_pem_is_due(self, engine_factory):
        engine = engine_factory()
        live = engine.base_dir / "live" / "example.com"
        live.mkdir(parents=True)
        (live / "cert.pem").write_bytes(b"garbage")
        assert engine.is_due(_config("example.com")) is True

    def test_unparsable_certificate_is_due(self, engine_factory):
        engine = engine_factory()
        live = engine.base_dir / "live" / "example.com"
        live.mkdir(parents=True)
        (live / "cert.pem").write_bytes(
            b"-----BEGIN CERTIFICATE-----\nAAAA\n-----END CERTIFICATE-----\n",
        )
        assert engine.is_due(_config("example.com")) is True


# ---------------------------------------------------------------------------
# run_all
# ---------------------------------------------------------------------------


class TestRunAll:
    def test_renews_due_and_skips_fresh(self, engine_factory, cert_factory):
        engine = engine_factory()
        engine.save(_config("fresh.test"))
        engine.save(_config("stale.test"))
        _store_cert(engine, cert_factory, "fresh.test", 60)
        _store_cert(engine, cert_factory, "stale.test", 5)

        summary = engine.run_all()

        assert summary.renewed == ["stale.test"]
        assert summary.skipped == ["fresh.test"]
        assert summary.ok
        assert engine.default_provider.calls == [(["stale.test"], None)]
        assert engine.is_due(_config("stale.test")) is False

    def test_one_failure_does_not_stop_the_batch(self, engine_factory, cert_factory):
        failing = FakeProvider(cert_factory, error=NetworkError("connection refused"))
        engine = engine_factory({"b.test": failing})
        for domain in ("a.test", "b.test", "c.test"):
            engine.save(_config(domain))

        with pytest.raises(RenewalError) as exc_info:
            engine.run_all()

        assert exc_info.value.failures == {"b.test": "connection refused"}
        assert "b.test: connection refused" in str(exc_info.value)
        assert engine.certificate_store(_config("a.test")).paths("a.test").cert.exists()
        assert engine.certificate_store(_config("c.test")).paths("c.test").cert.exists()
        assert not engine.certificate_store(_config("b.test")).paths("b.test").cert.exists()

    def test_all_failures_listed(self, engine_factory, cert_factory):
        engine = engine_factory(
            {
                "a.test": FakeProvider(cert_factory, error=IssuanceFailed("order failed")),
                "b.test": FakeProvider(cert_factory, error=NetworkError("timeout")),
            },
        )
        engine.save(_config("a.test"))
        engine.save(_config("b.test"))

        with pytest.raises(RenewalError) as exc_info:
            engine.run_all()
        assert exc_info.value.failures == {"a.test": "order failed", "b.test": "timeout"}

    def test_corrupt_record_reported_by_file_name(self, engine_factory):
        engine = engine_factory()
        engine.renewal_dir.mkdir(parents=True)
        (engine.renewal_dir / "broken.yaml").write_text("- not a mapping\n")

        with pytest.raises(RenewalError) as exc_info:
            engine.run_all()
        assert list(exc_info.value.failures) == ["broken.yaml"]

    def test_empty_run(self, engine_factory):
        summary = engine_factory().run_all()
        assert summary.renewed == [] and summary.skipped == [] and summary.ok

    def test_deadline_passed_to_provider(self, engine_factory):
        engine = engine_factory()
        engine.save(_config("a.test"))
        deadline = Deadline(600)
        engine.run_all(deadline=deadline)
        assert engine.default_provider.calls[0][1] is deadline

    def test_expired_deadline_marks_remaining(self, engine_factory):
        engine = engine_factory()
        engine.save(_config("a.test"))
        deadline = Deadline()
        deadline.cancel()
        with pytest.raises(RenewalError) as exc_info:
            engine.run_all(deadline=deadline)
        assert "deadline" in exc_info.value.failures["a.test"]
        assert engine.default_provider.calls == []

    def test_installers_run_for_targets(self, engine_factory):
        installer = MagicMock()
        installer_factory = MagicMock(return_value=installer)
        engine = engine_factory(installer_factory=installer_factory)
        engine.save(_config("a.test", targets=("nginx",)))

        engine.run_all()

        assert installer_factory.call_args.args[0] == "nginx"
        installer.install.assert_called_once_with("a.test")

    def test_installer_failure_is_collected(self, engine_factory):
        from trusttls.errors import InstallError

        installer = MagicMock()
        installer.install.side_effect = InstallError("reload failed")
        engine = engine_factory(installer_factory=MagicMock(return_value=installer))
        engine.save(_config("a.test", targets=("apache",)))

        with pytest.raises(RenewalError) as exc_info:
            engine.run_all()
        assert exc_info.value.failures == {"a.test": "reload failed"}


class TestIssue:
    def test_saves_certificate_then_config(self, engine_factory):
        engine = engine_factory()
        live = engine.issue(_config("new.test", provider="letsencrypt"))

        assert (live / "cert.pem").exists()
        saved = engine.load_domain("new.test")
        assert saved.provider == "acme"

    def test_config_not_saved_on_failure(self, engine_factory, cert_factory):
        failing = FakeProvider(cert_factory, error=IssuanceFailed("nope"))
        engine = engine_factory({"new.test": failing})
        with pytest.raises(IssuanceFailed):
            engine.issue(_config("new.test"))
        assert engine.list_configs() == []

    def test_acme_account_recorded(self, engine_factory):
        engine = engine_factory()
        engine.issue(_config("new.test"))

        account = CredentialStore(engine.base_dir).load("ops@example.com", "letsencrypt")
        assert account.email == "ops@example.com"
        assert account.server == "https://acme.test/dir"

    def test_no_letsencrypt_account_for_digicert_acme(self, engine_factory):
        engine = engine_factory()
        engine.issue(_config("new.test", provider="digicert-acme"))
        assert not (engine.base_dir / "accounts" / "letsencrypt").exists()

    def test_traversal_domain_rejected_before_issuing(self, engine_factory):
        engine = engine_factory()
        with pytest.raises(ValidationError):
            engine.issue(_config("../x"))
        assert engine.default_provider.calls == []
        assert not (engine.base_dir / "x").exists()
