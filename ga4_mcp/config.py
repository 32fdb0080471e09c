import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

AUTH_MODE_SERVICE = "service"
AUTH_MODE_OAUTH = "oauth"
AUTH_MODES = (AUTH_MODE_SERVICE, AUTH_MODE_OAUTH)

# Loggers that drown out ours at INFO
_QUIET_LOGGERS = ("google", "google.auth", "httpx", "httpcore", "uvicorn", "urllib3")


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, read once at startup."""

    auth_mode: str = AUTH_MODE_SERVICE
    credentials_json: Optional[str] = None
    credentials_path: Optional[str] = None
    token_path: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        auth_mode = (os.getenv("GA4_AUTH_MODE") or AUTH_MODE_SERVICE).strip().lower()
        if auth_mode not in AUTH_MODES:
            raise ValueError(f"GA4_AUTH_MODE must be one of {list(AUTH_MODES)}, got '{auth_mode}'")
        return cls(
            auth_mode=auth_mode,
            credentials_json=os.getenv("GOOGLE_CREDENTIALS_JSON") or None,
            credentials_path=os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or None,
            token_path=os.getenv("GOOGLE_OAUTH2_TOKEN_PATH") or None,
            client_id=os.getenv("GOOGLE_CLIENT_ID") or None,
            client_secret=os.getenv("GOOGLE_CLIENT_SECRET") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


def setup_logging(level: str = "INFO") -> None:
    """Configure logging to stderr; stdout is reserved for the stdio transport."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
