# Sheet tracker: configuration
# Values come from tracker.yaml (optional) and are overridden by environment
# variables, so a deployment can run on env alone.

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .rowstore import MemoryRowStore, RowStore, sample_rows
from .schema import DEFAULT_DEVELOPER

logger = logging.getLogger(__name__)

CONFIG_PATH = Path("tracker.yaml")

ENV_OVERRIDES = {
    "SPREADSHEET_ID": "spreadsheet_id",
    "GOOGLE_APPLICATION_CREDENTIALS": "credentials",
    "GOOGLE_SERVICE_ACCOUNT_EMAIL": "service_account_email",
    "GOOGLE_PRIVATE_KEY": "private_key",
    "USE_MOCK_DATA": "use_mock_data",
    "TRACKER_API_SECRET": "api_secret",
    "DEVELOPER_PASSPHRASE": "developer_passphrase",
    "TRACKER_REQUEST_TIMEOUT": "request_timeout",
}


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class TrackerConfig:
    """Runtime configuration for the tracker server."""

    # Spreadsheet
    spreadsheet_id: str = ""
    credentials: str = ""            # service account JSON, inline or a file path
    service_account_email: str = ""  # used when credentials is empty
    private_key: str = ""
    request_timeout: float = 15.0

    # Serve seeded in-memory rows instead of the spreadsheet
    use_mock_data: bool = False

    # Auth
    api_secret: str = ""             # X-API-Key for mutating routes
    developer_passphrase: str = ""   # maps to default_developer in the developer view
    default_developer: str = DEFAULT_DEVELOPER

    def apply_env(self, environ: Optional[Dict[str, str]] = None) -> "TrackerConfig":
        env = os.environ if environ is None else environ
        for var, attr in ENV_OVERRIDES.items():
            if env.get(var):
                setattr(self, attr, env[var])
        self.use_mock_data = _as_bool(self.use_mock_data)
        try:
            self.request_timeout = float(self.request_timeout)
        except (TypeError, ValueError):
            raise ConfigError(f"request_timeout must be a number, got {self.request_timeout!r}")
        return self

    def service_account_info(self) -> Dict[str, Any]:
        """
        Resolve service account credentials.

        Order: credentials as inline JSON, credentials as a JSON file path,
        then the separate email/private key fields.
        """
        raw = (self.credentials or "").strip()
        if raw:
            if raw.startswith("{"):
                try:
                    return json.loads(raw)
                except json.JSONDecodeError as e:
                    logger.error(f"Error parsing GOOGLE_APPLICATION_CREDENTIALS: {e}")
            elif Path(raw).expanduser().is_file():
                with open(Path(raw).expanduser()) as f:
                    return json.load(f)
            else:
                logger.error(f"Credentials file not found: {raw}")

        if not self.service_account_email or not self.private_key:
            raise ConfigError("Missing Google API credentials")
        return {
            "type": "service_account",
            "client_email": self.service_account_email,
            "private_key": self.private_key.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        }

    @classmethod
    def load(cls, path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> "TrackerConfig":
        """Load config from YAML file, falling back to defaults, then apply env."""
        env = os.environ if environ is None else environ
        cfg_path = Path(path or env.get("TRACKER_CONFIG") or CONFIG_PATH)
        cfg = cls()
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
            except (OSError, yaml.YAMLError, TypeError, AttributeError) as e:
                logger.warning(f"Ignoring unreadable config {cfg_path}: {e}")
                cfg = cls()
        return cfg.apply_env(env)


def build_row_store(cfg: TrackerConfig) -> RowStore:
    """Mock mode -> seeded MemoryRowStore; otherwise the Google spreadsheet."""
    if cfg.use_mock_data:
        logger.info("Using mock data instead of connecting to Google Sheets API")
        return MemoryRowStore(sample_rows())
    if not cfg.spreadsheet_id:
        raise ConfigError("spreadsheet_id is not set (SPREADSHEET_ID)")

    from .sheets import GoogleSheetsRowStore
    return GoogleSheetsRowStore.from_service_account(
        cfg.spreadsheet_id, cfg.service_account_info(), timeout=cfg.request_timeout
    )
