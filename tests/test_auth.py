"""Tests for Google credential bootstrap."""

import json
from unittest.mock import Mock, patch

import pytest
import google.auth.exceptions

from rocketdrive.api_clients.base import AuthenticationError
from rocketdrive.auth import google_credentials
from rocketdrive.auth.google_credentials import DRIVE_SCOPES, build_drive_service, load_credentials

MODULE = "rocketdrive.auth.google_credentials"


def write_json(path, data):
    path.write_text(json.dumps(data))
    return path


class TestLoadCredentials:

    def test_nothing_available(self, tmp_path):
        with pytest.raises(AuthenticationError, match="not found"):
            load_credentials(tmp_path / "credentials.json", tmp_path / "token.json")

    @patch(f"{MODULE}.service_account.Credentials.from_service_account_info")
    def test_service_account(self, from_info, tmp_path):
        info = {"type": "service_account", "client_email": "agent@project.iam.gserviceaccount.com"}
        path = write_json(tmp_path / "credentials.json", info)

        result = load_credentials(path, tmp_path / "token.json")

        assert result is from_info.return_value
        from_info.assert_called_once_with(info, scopes=DRIVE_SCOPES)

    @patch(f"{MODULE}.UserCredentials.from_authorized_user_file")
    def test_valid_token_is_used_as_is(self, from_file, tmp_path):
        token = write_json(tmp_path / "token.json", {"type": "authorized_user"})
        from_file.return_value.valid = True

        result = load_credentials(tmp_path / "credentials.json", token)

        assert result is from_file.return_value
        result.refresh.assert_not_called()

    @patch(f"{MODULE}.UserCredentials.from_authorized_user_file")
    def test_expired_token_is_refreshed_and_saved(self, from_file, tmp_path):
        token = write_json(tmp_path / "token.json", {"type": "authorized_user"})
        credentials = from_file.return_value
        credentials.valid = False
        credentials.refresh_token = "refresh"
        credentials.to_json.return_value = '{"token": "new"}'

        load_credentials(tmp_path / "credentials.json", token)

        credentials.refresh.assert_called_once()
        assert json.loads(token.read_text()) == {"token": "new"}

    @patch(f"{MODULE}.UserCredentials.from_authorized_user_file")
    def test_refresh_failure(self, from_file, tmp_path):
        token = write_json(tmp_path / "token.json", {"type": "authorized_user"})
        credentials = from_file.return_value
        credentials.valid = False
        credentials.refresh_token = "refresh"
        credentials.refresh.side_effect = google.auth.exceptions.RefreshError("invalid_grant")

        with pytest.raises(AuthenticationError, match="refresh failed"):
            load_credentials(tmp_path / "credentials.json", token)

    @patch(f"{MODULE}.UserCredentials.from_authorized_user_file")
    def test_expired_token_without_refresh_token(self, from_file, tmp_path):
        token = write_json(tmp_path / "token.json", {"type": "authorized_user"})
        from_file.return_value.valid = False
        from_file.return_value.refresh_token = None

        with pytest.raises(AuthenticationError, match="no refresh token"):
            load_credentials(tmp_path / "credentials.json", token)

    def test_client_secret_requires_prior_authorization(self, tmp_path):
        path = write_json(tmp_path / "credentials.json", {"installed": {"client_id": "x"}})

        with pytest.raises(AuthenticationError, match="client secret"):
            load_credentials(path, tmp_path / "token.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "credentials.json"
        path.write_text("{broken")

        with pytest.raises(AuthenticationError, match="Invalid credentials file"):
            load_credentials(path, tmp_path / "token.json")


@patch(f"{MODULE}.build")
@patch(f"{MODULE}.load_credentials")
def test_build_drive_service(load, build):
    service = build_drive_service("c.json", "t.json")

    assert service is build.return_value
    load.assert_called_once_with("c.json", "t.json", google_credentials.DRIVE_SCOPES)
    build.assert_called_once_with("drive", "v3", credentials=load.return_value, cache_discovery=False)
