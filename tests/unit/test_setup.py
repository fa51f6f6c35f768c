"""Tests for the interactive setup wizard."""
from unittest.mock import AsyncMock, patch

import pytest

from monica.client.auth import CredentialStore
from monica.client.errors import InvalidCredentialsError
from monica.scripts.setup import run_setup

TOKEN = "y" * 40


def run_wizard(store, answers, token=TOKEN):
    with patch("monica.scripts.setup.CredentialStore", return_value=store), \
         patch("builtins.input", side_effect=answers), \
         patch("monica.scripts.setup.getpass.getpass", return_value=token):
        run_setup()


class TestRunSetup:
    def test_saves_verified_credentials(self, tmp_path):
        client = AsyncMock()
        store = CredentialStore(credentials_dir=tmp_path, client_factory=lambda url, token: client)

        run_wizard(store, ["https://monica.example.org"])

        assert store.load() == {"api_url": "https://monica.example.org", "api_token": TOKEN}
        client.test_connection.assert_awaited_once()
        client.aclose.assert_awaited_once()

    def test_defaults_to_cloud_url(self, tmp_path):
        store = CredentialStore(credentials_dir=tmp_path, client_factory=lambda url, token: AsyncMock())

        run_wizard(store, [""])

        assert store.load()["api_url"] == "https://app.monicahq.com"

    def test_invalid_input_exits(self, tmp_path):
        store = CredentialStore(credentials_dir=tmp_path, client_factory=lambda url, token: AsyncMock())

        with pytest.raises(SystemExit) as exc_info:
            run_wizard(store, ["http://insecure.example.org"])

        assert exc_info.value.code == 1
        assert not store.has_credentials()

    def test_rejected_token_exits(self, tmp_path):
        client = AsyncMock()
        client.test_connection.side_effect = InvalidCredentialsError()
        store = CredentialStore(credentials_dir=tmp_path, client_factory=lambda url, token: client)

        with pytest.raises(SystemExit):
            run_wizard(store, ["https://monica.example.org"])

        assert not store.has_credentials()

    def test_keeps_existing_credentials_unless_confirmed(self, tmp_path):
        store = CredentialStore(credentials_dir=tmp_path, client_factory=lambda url, token: AsyncMock())
        store.save("https://old.example.org", TOKEN)

        with pytest.raises(SystemExit) as exc_info:
            run_wizard(store, ["n"])

        assert exc_info.value.code == 0
        assert store.load()["api_url"] == "https://old.example.org"
