"""
Tests for mail OAuth token handling and secret encryption.
"""

from datetime import datetime, timedelta

import pytest
import requests

from app.core.errors import ExternalServiceError, ValidationError
from app.core.security import decrypt_secret, encrypt_secret
from app.services.mail_oauth import MailOAuthService, token_url_for

NOW = datetime(2026, 3, 2, 12, 0)


class FakeResponse:
    def __init__(self, status_code: int, payload: dict):
        self.status_code = status_code
        self._payload = payload

    def json(self) -> dict:
        return self._payload


class FakeHttp:
    """Stands in for the ``requests`` module."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, data=None, timeout=None):
        self.calls.append((url, data))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def service_with(db, *responses) -> MailOAuthService:
    return MailOAuthService(db, http=FakeHttp(*responses), clock=lambda: NOW)


def save_default(service: MailOAuthService, **overrides):
    fields = {"provider": "microsoft", "client_id": "client", "client_secret": "hunter2", "tenant_id": "contoso"}
    fields.update(overrides)
    return service.save_config(**fields)


class TestSecrets:
    def test_encrypt_round_trip_and_nonce(self) -> None:
        first, second = encrypt_secret("hunter2"), encrypt_secret("hunter2")
        assert first != second
        assert decrypt_secret(first) == decrypt_secret(second) == "hunter2"

    def test_stored_secret_is_encrypted(self, db) -> None:
        config = save_default(service_with(db))
        assert config.client_secret != "hunter2"
        assert decrypt_secret(config.client_secret) == "hunter2"


class TestConfig:
    """Tests for saving and loading the active configuration."""

    def test_missing_config(self, db) -> None:
        with pytest.raises(ValidationError) as exc_info:
            service_with(db).get_active_config()
        assert exc_info.value.error_code == "oauth_not_configured"

    def test_refresh_grant_needs_token(self, db) -> None:
        with pytest.raises(ValidationError):
            save_default(service_with(db), grant_type="refresh_token")

    def test_provider_token_url(self, db) -> None:
        config = save_default(service_with(db))
        assert token_url_for(config) == "https://login.microsoftonline.com/contoso/oauth2/v2.0/token"

    def test_custom_provider_needs_url(self, db) -> None:
        config = save_default(service_with(db), provider="custom")
        with pytest.raises(ValidationError):
            token_url_for(config)


class TestTokens:
    """Tests for reusing and refreshing the access token."""

    def test_refresh_stores_encrypted_token(self, db) -> None:
        service = service_with(db, FakeResponse(200, {"access_token": "tok-1", "expires_in": 3600}))
        config = save_default(service)

        assert service.get_valid_access_token() == "tok-1"
        assert config.access_token != "tok-1"
        assert config.token_expires_at == NOW + timedelta(hours=1)
        url, data = service.http.calls[0]
        assert data["grant_type"] == "client_credentials"
        assert data["client_secret"] == "hunter2"
        assert data["scope"] == "https://outlook.office365.com/.default"

    def test_valid_token_is_reused(self, db) -> None:
        service = service_with(db, FakeResponse(200, {"access_token": "tok-1", "expires_in": 3600}))
        save_default(service)
        service.get_valid_access_token()
        assert service.get_valid_access_token() == "tok-1"
        assert len(service.http.calls) == 1

    def test_token_near_expiry_is_refreshed(self, db) -> None:
        service = service_with(
            db,
            FakeResponse(200, {"access_token": "tok-1", "expires_in": 240}),
            FakeResponse(200, {"access_token": "tok-2", "expires_in": 3600}),
        )
        save_default(service)
        service.get_valid_access_token()
        assert service.get_valid_access_token() == "tok-2"

    def test_refresh_token_grant_rotates_token(self, db) -> None:
        service = service_with(db, FakeResponse(200, {"access_token": "tok", "refresh_token": "rt-2"}))
        config = save_default(service, grant_type="refresh_token", refresh_token="rt-1")
        service.get_valid_access_token()
        assert service.http.calls[0][1]["refresh_token"] == "rt-1"
        assert decrypt_secret(config.refresh_token) == "rt-2"

    def test_provider_rejection(self, db) -> None:
        service = service_with(db, FakeResponse(400, {"error": "invalid_client"}))
        save_default(service)
        with pytest.raises(ExternalServiceError) as exc_info:
            service.get_valid_access_token()
        assert exc_info.value.error_code == "oauth_refresh_failed"
        assert "invalid_client" in exc_info.value.message

    def test_provider_unreachable(self, db) -> None:
        service = service_with(db, requests.ConnectionError("no route"))
        save_default(service)
        with pytest.raises(ExternalServiceError) as exc_info:
            service.get_valid_access_token()
        assert exc_info.value.error_code == "oauth_provider_unreachable"

    def test_saving_config_drops_cached_token(self, db) -> None:
        service = service_with(db, FakeResponse(200, {"access_token": "tok-1"}))
        save_default(service)
        service.get_valid_access_token()
        config = save_default(service, client_secret="rotated")
        assert config.access_token is None
        assert config.token_expires_at is None
