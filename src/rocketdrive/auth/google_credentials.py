"""
Google Drive credential bootstrap.

Credentials come from one of two files prepared ahead of time:

- an authorized-user token (``token.json``) holding a refresh token, written by
  a previous consent on another machine or by this module after a refresh;
- a service-account key (``credentials.json`` with ``"type": "service_account"``).

The token file wins when both exist. There is no interactive consent flow;
an OAuth client secret alone is rejected.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials as UserCredentials
from googleapiclient.discovery import build

from ..api_clients.base import AuthenticationError
from ..utils.logging import get_logger

# Upload-only access: the agent can see just the files it created
DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.file"]
DRIVE_API_VERSION = "v3"

logger = get_logger(__name__)


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise AuthenticationError(f"Invalid credentials file format: {path}: {e}")
    except OSError as e:
        raise AuthenticationError(f"Cannot read credentials file {path}: {e}")


def _save_token(credentials: UserCredentials, token_path: Path) -> None:
    try:
        token_path.parent.mkdir(parents=True, exist_ok=True)
        token_path.write_text(credentials.to_json(), encoding='utf-8')
        logger.debug("Token saved", path=str(token_path))
    except OSError as e:
        # The in-memory credentials still work for this run
        logger.warning("Failed to save refreshed token", path=str(token_path), error=str(e))


def _load_user_credentials(path: Path, scopes: Sequence[str], persist_to: Optional[Path]) -> UserCredentials:
    _read_json(path)
    try:
        credentials = UserCredentials.from_authorized_user_file(str(path), scopes=list(scopes))
    except ValueError as e:
        raise AuthenticationError(f"Invalid authorized-user token {path}: {e}")

    if credentials.valid:
        return credentials

    if not credentials.refresh_token:
        raise AuthenticationError(f"Token in {path} is expired and has no refresh token")

    logger.info("Refreshing expired access token", path=str(path))
    try:
        credentials.refresh(Request())
    except google.auth.exceptions.RefreshError as e:
        raise AuthenticationError(f"Token refresh failed: {e}")
    except google.auth.exceptions.TransportError as e:
        raise AuthenticationError(f"Token refresh failed, network unavailable: {e}")

    if persist_to is not None:
        _save_token(credentials, persist_to)

    return credentials


def load_credentials(
    credentials_path: Union[str, Path] = "credentials.json",
    token_path: Union[str, Path] = "token.json",
    scopes: Sequence[str] = DRIVE_SCOPES
):
    """Load Google credentials for the Drive API.

    Args:
        credentials_path: Service-account key or authorized-user file
        token_path: Authorized-user token file, refreshed in place
        scopes: OAuth scopes to request

    Returns:
        A google-auth credentials object

    Raises:
        AuthenticationError: If no usable credentials are found
    """
    credentials_path = Path(credentials_path)
    token_path = Path(token_path)

    if token_path.exists():
        logger.info("Using authorized-user token", path=str(token_path))
        return _load_user_credentials(token_path, scopes, persist_to=token_path)

    if not credentials_path.exists():
        raise AuthenticationError(
            f"Credentials file not found: {credentials_path} (and no token at {token_path})"
        )

    info = _read_json(credentials_path)
    credential_type = info.get("type")

    if credential_type == "service_account":
        logger.info("Using service account credentials", path=str(credentials_path))
        try:
            return service_account.Credentials.from_service_account_info(info, scopes=list(scopes))
        except ValueError as e:
            raise AuthenticationError(f"Invalid service account key {credentials_path}: {e}")

    if credential_type == "authorized_user":
        logger.info("Using authorized-user credentials", path=str(credentials_path))
        return _load_user_credentials(credentials_path, scopes, persist_to=token_path)

    if "installed" in info or "web" in info:
        raise AuthenticationError(
            f"{credentials_path} is an OAuth client secret; authorize once and place the "
            f"resulting token at {token_path}"
        )

    raise AuthenticationError(f"Unrecognized credentials file: {credentials_path}")


def build_drive_service(
    credentials_path: Union[str, Path] = "credentials.json",
    token_path: Union[str, Path] = "token.json",
    scopes: Sequence[str] = DRIVE_SCOPES
):
    """Build an authenticated Drive v3 resource."""
    credentials = load_credentials(credentials_path, token_path, scopes)
    try:
        service = build("drive", DRIVE_API_VERSION, credentials=credentials, cache_discovery=False)
    except google.auth.exceptions.DefaultCredentialsError as e:
        raise AuthenticationError(f"Invalid credentials: {e}")

    logger.info("Google Drive service ready", api_version=DRIVE_API_VERSION)
    return service
