"""Credential providers for the Google Analytics Data API.

Two strategies are supported and exactly one is selected per process:

* ``service``: a service-account key, loaded once and never refreshed here.
* ``oauth``: user-delegated OAuth2 tokens read from a ``tokens.json`` record.
  google-auth refreshes the access token lazily when it expires; every refresh
  is merged into the record and written back to the file it came from.
"""

import abc
import base64
import binascii
import json
import logging
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import google.auth.credentials
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials

from .config import AUTH_MODE_OAUTH, AUTH_MODE_SERVICE, Settings

logger = logging.getLogger(__name__)

READ_ONLY_ANALYTICS_SCOPE = "https://www.googleapis.com/auth/analytics.readonly"
TOKEN_URI = "https://oauth2.googleapis.com/token"
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600
TOKEN_FILENAME = "tokens.json"

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class CredentialError(Exception):
    """Credential material is missing or unusable; the server cannot start."""


# Token record helpers


def candidate_token_paths(override: Optional[str] = None) -> List[Path]:
    """Return the token file locations to try, in order."""
    paths = []
    if override:
        paths.append(Path(override))
    cwd = Path.cwd()
    paths.extend([
        cwd / TOKEN_FILENAME,
        cwd.parent / TOKEN_FILENAME,
        PROJECT_ROOT / TOKEN_FILENAME,
    ])
    return paths


def locate_token_file(override: Optional[str] = None) -> Path:
    paths = candidate_token_paths(override)
    for path in paths:
        if path.is_file():
            return path
    searched = ", ".join(str(p) for p in paths)
    raise CredentialError(f"Tokens file not found. Searched paths: {searched}")


def load_token_record(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            record = json.load(f)
    except json.JSONDecodeError as e:
        raise CredentialError(f"Tokens file {path} is not valid JSON: {e}") from e
    except OSError as e:
        raise CredentialError(f"Unable to read tokens file {path}: {e}") from e
    if not isinstance(record, dict):
        raise CredentialError(f"Tokens file {path} must contain a JSON object")
    return record


def save_token_record(path: Path, record: Dict[str, Any]) -> None:
    """Overwrite ``path`` with ``record``."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(record, f, indent=2)


def merge_refreshed(record: Dict[str, Any], issued: Dict[str, Any], now_ms: Optional[int] = None) -> Dict[str, Any]:
    """Merge freshly issued token fields over a previously held record.

    Fields the issuer did not supply keep their old values, so the refresh
    token survives refreshes that do not rotate it. When no absolute expiry is
    issued, it is computed from ``expires_in`` (default one hour).
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    merged = dict(record)
    merged.update({k: v for k, v in issued.items() if v is not None and k != "expires_in"})
    if not issued.get("expiry_date"):
        lifetime = issued.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS
        merged["expiry_date"] = now_ms + int(lifetime) * 1000
    return merged


def expiry_from_epoch_ms(value: Optional[Any]) -> Optional[datetime]:
    # google-auth compares expiry against naive UTC datetimes
    if not value:
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc).replace(tzinfo=None)


def expiry_to_epoch_ms(expiry: Optional[datetime]) -> Optional[int]:
    if expiry is None:
        return None
    return int(expiry.replace(tzinfo=timezone.utc).timestamp() * 1000)


class RefreshingCredentials(Credentials):
    """OAuth2 user credentials that notify observers after every refresh."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._refresh_observers: List[Callable[["RefreshingCredentials"], None]] = []

    def add_refresh_observer(self, observer: Callable[["RefreshingCredentials"], None]) -> None:
        self._refresh_observers.append(observer)

    def refresh(self, request):
        super().refresh(request)
        for observer in list(self._refresh_observers):
            observer(self)


# Providers


class CredentialProvider(abc.ABC):
    """Produces the authentication handle every Data API call is made with."""

    mode: str = ""

    @abc.abstractmethod
    def acquire(self) -> google.auth.credentials.Credentials:
        """Return the credentials handle, always bound to the same identity."""


def _decode_inline_key(value: str) -> Dict[str, Any]:
    text = value.strip()
    try:
        if not text.startswith("{"):
            text = base64.b64decode(text, validate=True).decode("utf-8")
        return json.loads(text)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CredentialError(f"Failed to decode inline service account credentials: {e}") from e


def load_service_account_info(settings: Settings) -> Dict[str, Any]:
    """Resolve the service-account key document from the environment."""
    if settings.credentials_json:
        logger.info("Loading service account credentials from GOOGLE_CREDENTIALS_JSON")
        return _decode_inline_key(settings.credentials_json)

    value = settings.credentials_path
    if not value:
        raise CredentialError(
            "No Google credentials found. Set GOOGLE_APPLICATION_CREDENTIALS or GOOGLE_CREDENTIALS_JSON"
        )
    path = Path(value)
    if os.path.isfile(value):
        logger.info(f"Using credentials file: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise CredentialError(f"Credentials file {path} is not valid JSON: {e}") from e
    # Deployments without a writable filesystem pass the key base64-encoded
    if not value.startswith("/") and not value.endswith(".json"):
        logger.info("Decoding base64 credentials from GOOGLE_APPLICATION_CREDENTIALS")
        return _decode_inline_key(value)
    raise CredentialError(f"Credentials file not found: {value}")


class ServiceAccountProvider(CredentialProvider):
    mode = AUTH_MODE_SERVICE

    def __init__(self, info: Dict[str, Any]):
        try:
            self._credentials = service_account.Credentials.from_service_account_info(
                info, scopes=[READ_ONLY_ANALYTICS_SCOPE]
            )
        except (ValueError, KeyError) as e:
            raise CredentialError(f"Invalid service account key: {e}") from e
        logger.info(f"Service account credentials loaded for {self._credentials.service_account_email}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceAccountProvider":
        return cls(load_service_account_info(settings))

    def acquire(self) -> google.auth.credentials.Credentials:
        return self._credentials


class DelegatedProvider(CredentialProvider):
    """OAuth2 tokens loaded from disk and persisted back on refresh."""

    mode = AUTH_MODE_OAUTH

    def __init__(self, path: Path, record: Dict[str, Any], client_id: Optional[str] = None,
                 client_secret: Optional[str] = None):
        self.path = Path(path)
        self.record = record

        if not (client_id and client_secret):
            logger.warning("GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET not set; expired tokens cannot be refreshed")
            client_id = client_secret = None

        scope = record.get("scope")
        self._credentials = RefreshingCredentials(
            record.get("access_token"),
            refresh_token=record.get("refresh_token"),
            token_uri=TOKEN_URI,
            client_id=client_id,
            client_secret=client_secret,
            scopes=scope.split() if scope else [READ_ONLY_ANALYTICS_SCOPE],
            expiry=expiry_from_epoch_ms(record.get("expiry_date")),
        )
        self._credentials.add_refresh_observer(self._on_refresh)

    @classmethod
    def from_settings(cls, settings: Settings) -> "DelegatedProvider":
        path = locate_token_file(settings.token_path)
        logger.info(f"Loading tokens from: {path}")
        return cls(path, load_token_record(path), settings.client_id, settings.client_secret)

    def acquire(self) -> google.auth.credentials.Credentials:
        return self._credentials

    def _on_refresh(self, credentials: Credentials) -> None:
        logger.info("Tokens refreshed, saving to file...")
        issued = {
            "access_token": credentials.token,
            "refresh_token": credentials.refresh_token,
            "expiry_date": expiry_to_epoch_ms(credentials.expiry),
        }
        self.record = merge_refreshed(self.record, issued)
        try:
            save_token_record(self.path, self.record)
        except OSError as e:
            logger.error(f"Failed to persist refreshed tokens to {self.path}: {e}")
            return
        logger.info("Tokens saved successfully.")


def build_provider(settings: Settings) -> CredentialProvider:
    """Select the credential strategy for this process."""
    if settings.auth_mode == AUTH_MODE_OAUTH:
        return DelegatedProvider.from_settings(settings)
    return ServiceAccountProvider.from_settings(settings)
