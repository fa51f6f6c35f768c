"""Tests for credential validation, persistence and connect()."""
import json
import stat
from unittest.mock import AsyncMock, MagicMock

import pytest

from monica.client.auth import (
    CREDENTIALS_FILE_NAME,
    INSTANCE_CLOUD,
    INSTANCE_SELF_HOSTED,
    CredentialStore,
    CredentialsRejectedError,
    InvalidCredentialsInput,
    NoCredentialsError,
    instance_type,
    validate_credentials,
)
from monica.client.cache import ResponseCache
from monica.client.errors import InvalidCredentialsError, NetworkError

VALID_URL = "https://app.monicahq.com"
VALID_TOKEN = "x" * 40


def make_store(tmp_path, client=None):
    client = client or AsyncMock()
    factory = MagicMock(return_value=client)
    store = CredentialStore(credentials_dir=tmp_path / "creds", client_factory=factory)
    return store, factory, client


class TestValidateCredentials:
    def test_valid(self):
        result = validate_credentials(VALID_URL, VALID_TOKEN)
        assert result.is_valid
        assert result.url_error is None
        assert result.token_error is None

    def test_empty_url(self):
        result = validate_credentials("", VALID_TOKEN)
        assert not result.is_valid
        assert result.url_error == "API URL is required"

    def test_http_rejected(self):
        result = validate_credentials("http://monica.local", VALID_TOKEN)
        assert result.url_error == "URL must use HTTPS"

    def test_malformed_url(self):
        assert validate_credentials("not a url", VALID_TOKEN).url_error == "Please enter a valid URL"

    def test_short_token(self):
        result = validate_credentials(VALID_URL, "short")
        assert result.token_error == "API token appears to be invalid"

    def test_both_errors_reported(self):
        result = validate_credentials("", "")
        assert result.url_error and result.token_error


class TestInstanceType:
    def test_cloud(self):
        assert instance_type("https://app.monicahq.com/") == INSTANCE_CLOUD

    def test_self_hosted(self):
        assert instance_type("https://monica.example.org") == INSTANCE_SELF_HOSTED


class TestPersistence:
    def test_save_and_load(self, tmp_path):
        store, _, _ = make_store(tmp_path)
        store.save("https://monica.example.org/ ", f" {VALID_TOKEN} ")

        assert store.has_credentials()
        assert store.load() == {"api_url": "https://monica.example.org", "api_token": VALID_TOKEN}

    def test_file_permissions(self, tmp_path):
        store, _, _ = make_store(tmp_path)
        store.save(VALID_URL, VALID_TOKEN)

        creds_dir = tmp_path / "creds"
        assert stat.S_IMODE(creds_dir.stat().st_mode) == 0o700
        assert stat.S_IMODE((creds_dir / CREDENTIALS_FILE_NAME).stat().st_mode) == 0o600

    def test_load_without_file_raises(self, tmp_path):
        store, _, _ = make_store(tmp_path)
        with pytest.raises(NoCredentialsError):
            store.load()

    def test_clear(self, tmp_path):
        store, _, _ = make_store(tmp_path)
        store.save(VALID_URL, VALID_TOKEN)
        store.clear()
        assert not store.has_credentials()

    def test_clear_when_absent(self, tmp_path):
        store, _, _ = make_store(tmp_path)
        store.clear()

    def test_default_cache_created(self, tmp_path):
        store, _, _ = make_store(tmp_path)
        assert isinstance(store.cache, ResponseCache)


class TestAuthenticateAndSave:
    @pytest.mark.asyncio
    async def test_invalid_input_never_calls_server(self, tmp_path):
        store, factory, _ = make_store(tmp_path)
        with pytest.raises(InvalidCredentialsInput) as exc_info:
            await store.authenticate_and_save("http://x", "short")

        factory.assert_not_called()
        assert exc_info.value.validation.url_error == "URL must use HTTPS"
        assert not store.has_credentials()

    @pytest.mark.asyncio
    async def test_verified_credentials_saved(self, tmp_path):
        store, factory, client = make_store(tmp_path)
        result = await store.authenticate_and_save(VALID_URL, VALID_TOKEN)

        assert result is client
        factory.assert_called_once_with(VALID_URL, VALID_TOKEN)
        client.test_connection.assert_awaited_once()
        assert json.loads((tmp_path / "creds" / CREDENTIALS_FILE_NAME).read_text())["api_url"] == VALID_URL

    @pytest.mark.asyncio
    async def test_rejected_token_not_saved(self, tmp_path):
        client = AsyncMock()
        client.test_connection.side_effect = InvalidCredentialsError()
        store, _, _ = make_store(tmp_path, client)

        with pytest.raises(InvalidCredentialsError):
            await store.authenticate_and_save(VALID_URL, VALID_TOKEN)

        assert not store.has_credentials()
        client.aclose.assert_awaited_once()


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_returns_verified_client(self, tmp_path):
        store, factory, client = make_store(tmp_path)
        store.save(VALID_URL, VALID_TOKEN)

        assert await store.connect() is client
        factory.assert_called_once_with(VALID_URL, VALID_TOKEN)

    @pytest.mark.asyncio
    async def test_connect_without_credentials(self, tmp_path):
        store, _, _ = make_store(tmp_path)
        with pytest.raises(NoCredentialsError):
            await store.connect()

    @pytest.mark.asyncio
    async def test_401_clears_saved_credentials(self, tmp_path):
        client = AsyncMock()
        client.test_connection.side_effect = InvalidCredentialsError()
        store, _, _ = make_store(tmp_path, client)
        store.save(VALID_URL, VALID_TOKEN)

        with pytest.raises(CredentialsRejectedError):
            await store.connect()

        assert not store.has_credentials()
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_network_error_keeps_credentials(self, tmp_path):
        client = AsyncMock()
        client.test_connection.side_effect = NetworkError()
        store, _, _ = make_store(tmp_path, client)
        store.save(VALID_URL, VALID_TOKEN)

        with pytest.raises(NetworkError):
            await store.connect()

        assert store.has_credentials()
