"""Unit tests for trusttls.challenge.http01."""

from __future__ import annotations

import stat

import pytest
from acmeow.handlers import CallbackHttpHandler

from trusttls.challenge.http01 import Http01Responder
from trusttls.errors import EmptyWebroot


class TestPresent:
    def test_writes_token_file(self, tmp_path):
        responder = Http01Responder(tmp_path)
        path = responder.present("tok123", "tok123.thumbprint")

        assert path == tmp_path / ".well-known" / "acme-challenge" / "tok123"
        assert path.read_text() == "tok123.thumbprint"
        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_empty_webroot(self):
        with pytest.raises(EmptyWebroot):
            Http01Responder("").present("tok", "auth")

    @pytest.mark.parametrize("token", ["", "..", ".", "a/b"])
    def test_rejects_path_tokens(self, tmp_path, token):
        with pytest.raises(ValueError, match="invalid HTTP-01 token"):
            Http01Responder(tmp_path).present(token, "auth")


class TestCleanUp:
    def test_removes_file(self, tmp_path):
        responder = Http01Responder(tmp_path)
        path = responder.present("tok", "auth")
        responder.clean_up("tok")
        assert not path.exists()

    def test_missing_file_is_fine(self, tmp_path):
        Http01Responder(tmp_path).clean_up("never-written")

    def test_no_webroot_is_fine(self):
        Http01Responder().clean_up("tok")


class TestAcmeHandler:
    def test_builds_acmeow_handler(self, tmp_path):
        handler = Http01Responder(tmp_path).as_acme_handler()
        assert isinstance(handler, CallbackHttpHandler)

    def test_callbacks_follow_webroot_changes(self, tmp_path):
        responder = Http01Responder("")
        handler = responder.as_acme_handler()

        responder.webroot = str(tmp_path)
        handler.setup("example.com", "tok", "auth")
        token_file = tmp_path / ".well-known" / "acme-challenge" / "tok"
        assert token_file.read_text() == "auth"

        handler.cleanup("example.com", "tok")
        assert not token_file.exists()
