"""Tests for CredentialManager and the token sources."""

from __future__ import annotations

import base64
import dataclasses

import pytest

from conftest import FakeTokenSource
from photo_rag.auth import (
    DEFAULT_TOKEN_LIFETIME_SECONDS,
    SAFETY_MARGIN_SECONDS,
    ApiKeyTokenSource,
    CredentialManager,
    GcloudCliTokenSource,
    ServiceAccountTokenSource,
    token_source_from_settings,
)
from photo_rag.config import settings
from photo_rag.errors import AuthError


class FailingSource(FakeTokenSource):
    def __init__(self, exc: Exception):
        super().__init__()
        self.exc = exc

    def fetch(self):
        self.calls += 1
        raise self.exc


class EmptyTokenSource(FakeTokenSource):
    def fetch(self):
        self.calls += 1
        return "", 3600.0


def test_first_call_refreshes(token_source, clock):
    manager = CredentialManager(token_source, clock=clock)
    assert manager.get_valid_token() == "token-1"
    assert token_source.calls == 1
    assert manager.credential.expires_at == clock.now + 3600.0


def test_cached_token_reused_without_refresh(token_source, clock):
    manager = CredentialManager(token_source, clock=clock)
    first = manager.get_valid_token()
    clock.advance(600)
    second = manager.get_valid_token()
    assert first == second == "token-1"
    assert token_source.calls == 1


def test_refreshes_inside_safety_margin(token_source, clock):
    manager = CredentialManager(token_source, clock=clock)
    manager.get_valid_token()

    # Exactly the margin left is not enough
    clock.advance(3600.0 - SAFETY_MARGIN_SECONDS)
    assert manager.get_valid_token() == "token-2"
    assert token_source.calls == 2


def test_token_just_outside_margin_is_kept(token_source, clock):
    manager = CredentialManager(token_source, clock=clock)
    manager.get_valid_token()
    clock.advance(3600.0 - SAFETY_MARGIN_SECONDS - 1)
    assert manager.get_valid_token() == "token-1"


def test_returned_token_always_has_margin(token_source, clock):
    manager = CredentialManager(token_source, clock=clock)
    for _ in range(20):
        manager.get_valid_token()
        assert manager.credential.expires_at - clock.now > SAFETY_MARGIN_SECONDS
        clock.advance(400)


def test_unknown_expiry_uses_default_lifetime(clock):
    source = FakeTokenSource(lifetime=None)
    manager = CredentialManager(source, clock=clock)
    manager.get_valid_token()
    assert manager.credential.expires_at == clock.now + DEFAULT_TOKEN_LIFETIME_SECONDS


def test_short_lived_token_rejected(clock):
    manager = CredentialManager(FakeTokenSource(lifetime=60.0), clock=clock)
    with pytest.raises(AuthError):
        manager.get_valid_token()
    assert manager.credential is None


def test_source_error_wrapped_in_auth_error(clock):
    source = FailingSource(RuntimeError("invalid_grant"))
    manager = CredentialManager(source, clock=clock)
    with pytest.raises(AuthError, match="invalid_grant"):
        manager.get_valid_token()


def test_auth_error_not_retried(clock):
    source = FailingSource(AuthError("denied"))
    manager = CredentialManager(source, clock=clock)
    with pytest.raises(AuthError, match="denied"):
        manager.get_valid_token()
    assert source.calls == 1


def test_empty_token_is_auth_error(clock):
    manager = CredentialManager(EmptyTokenSource(), clock=clock)
    with pytest.raises(AuthError, match="no|Failed"):
        manager.get_valid_token()


def test_api_key_source_never_refreshes(clock):
    source = ApiKeyTokenSource("static-key")
    manager = CredentialManager(source, clock=clock)
    assert manager.get_valid_token() == "static-key"
    clock.advance(10 * 24 * 3600)
    assert manager.get_valid_token() == "static-key"
    assert manager.headers("static-key") == {"x-goog-api-key": "static-key"}


def test_api_key_source_requires_key():
    with pytest.raises(AuthError):
        ApiKeyTokenSource(None)


def test_service_account_requires_key_material():
    with pytest.raises(AuthError, match="GOOGLE_SERVICE_ACCOUNT_KEY"):
        ServiceAccountTokenSource()


def test_service_account_rejects_bad_base64_json():
    bad = base64.b64encode(b"not json").decode()
    with pytest.raises(AuthError, match="Invalid base64 or JSON"):
        ServiceAccountTokenSource(key_base64=bad)


def test_service_account_headers_are_bearer():
    source = ServiceAccountTokenSource(key_json='{"type": "service_account"}')
    assert source.headers("abc") == {"Authorization": "Bearer abc"}


def test_gcloud_missing_binary_is_auth_error(clock):
    source = GcloudCliTokenSource(command=["definitely-not-a-real-gcloud-binary"])
    manager = CredentialManager(source, clock=clock)
    with pytest.raises(AuthError, match="gcloud"):
        manager.get_valid_token()


def test_gcloud_output_is_stripped(monkeypatch):
    class Completed:
        stdout = "ya29.token\n"

    monkeypatch.setattr("photo_rag.auth.subprocess.run", lambda *a, **kw: Completed())
    token, expires_in = GcloudCliTokenSource().fetch()
    assert token == "ya29.token"
    assert expires_in is None


def test_token_source_selected_by_mode():
    gcloud = dataclasses.replace(settings, EMBEDDING_AUTH_MODE="gcloud")
    assert isinstance(token_source_from_settings(gcloud), GcloudCliTokenSource)

    api_key = dataclasses.replace(settings, EMBEDDING_AUTH_MODE="api_key", GOOGLE_API_KEY="k")
    assert isinstance(token_source_from_settings(api_key), ApiKeyTokenSource)

    service = dataclasses.replace(
        settings,
        EMBEDDING_AUTH_MODE="service_account",
        GOOGLE_SERVICE_ACCOUNT_KEY='{"type": "service_account"}',
        GOOGLE_SERVICE_ACCOUNT_KEY_BASE64=None,
    )
    assert isinstance(token_source_from_settings(service), ServiceAccountTokenSource)
