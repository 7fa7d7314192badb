"""
Google Sheets row store.

Talks to the Sheets v4 REST API through an authorized requests session.
Every call is a single attempt bounded by a timeout; any auth, network or
HTTP failure surfaces as UpstreamUnavailable.

The data lives on the first tab of the spreadsheet. Its title is looked up
once per process and cached (see resolve_sheet_name). The header row is
inspected, never rewritten, on the first fetch of each store.
"""
import logging
import threading
from typing import Any, Dict, List, Sequence
from urllib.parse import quote

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from .rowstore import HEADER, RowStore, UpstreamUnavailable

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
API_ROOT = "https://sheets.googleapis.com/v4/spreadsheets"
DEFAULT_TIMEOUT = 15.0

# spreadsheet id -> first sheet title. Filled once per process, never invalidated.
_sheet_names: Dict[str, str] = {}
_sheet_names_lock = threading.Lock()


def reset_sheet_name_cache():
    """Forget cached sheet titles (tests only)."""
    with _sheet_names_lock:
        _sheet_names.clear()


def _a1(sheet_name: str, cells: str = "") -> str:
    """Quote a sheet title for A1 notation: 'Form Responses 1'!A1."""
    title = "'" + sheet_name.replace("'", "''") + "'"
    return f"{title}!{cells}" if cells else title


class GoogleSheetsRowStore(RowStore):
    """Row store backed by the first tab of a Google spreadsheet."""

    def __init__(self, spreadsheet_id: str, session: requests.Session, timeout: float = DEFAULT_TIMEOUT):
        self.spreadsheet_id = spreadsheet_id
        self.session = session
        self.timeout = timeout
        self._header_checked = False

    @classmethod
    def from_service_account(
        cls,
        spreadsheet_id: str,
        info: Dict[str, Any],
        timeout: float = DEFAULT_TIMEOUT,
    ) -> "GoogleSheetsRowStore":
        """Build a store from service account JSON (client_email, private_key, ...)."""
        try:
            credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        except (ValueError, KeyError, GoogleAuthError) as e:
            raise UpstreamUnavailable(f"Invalid service account credentials: {e}") from e
        return cls(spreadsheet_id, AuthorizedSession(credentials), timeout)

    def describe(self) -> str:
        return f"google-sheets:{self.spreadsheet_id}"

    # ── HTTP ─────────────────────────────────────────────────────────────

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{API_ROOT}/{self.spreadsheet_id}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise UpstreamUnavailable(f"Sheets API timed out after {self.timeout}s") from e
        except (requests.exceptions.RequestException, GoogleAuthError) as e:
            raise UpstreamUnavailable(f"Sheets API request failed: {e}") from e

        if resp.status_code >= 400:
            raise UpstreamUnavailable(
                f"Sheets API {method} {path} returned {resp.status_code}: {resp.text[:200]}"
            )
        try:
            return resp.json() if resp.content else {}
        except ValueError as e:
            raise UpstreamUnavailable(f"Sheets API returned invalid JSON: {e}") from e

    def _values_path(self, a1_range: str, suffix: str = "") -> str:
        return f"/values/{quote(a1_range, safe='')}{suffix}"

    # ── Sheet name ───────────────────────────────────────────────────────

    def resolve_sheet_name(self) -> str:
        """Title of the first tab, fetched once per process."""
        cached = _sheet_names.get(self.spreadsheet_id)
        if cached:
            return cached
        with _sheet_names_lock:
            cached = _sheet_names.get(self.spreadsheet_id)
            if cached:
                return cached
            data = self._request("GET", "", params={"fields": "sheets.properties.title"})
            sheets = data.get("sheets") or []
            title = (sheets[0].get("properties") or {}).get("title") if sheets else None
            if not title:
                raise UpstreamUnavailable(f"No sheets found in spreadsheet {self.spreadsheet_id}")
            _sheet_names[self.spreadsheet_id] = title
            logger.info(f"Found sheet: {title}")
            return title

    # ── RowStore ─────────────────────────────────────────────────────────

    def header(self) -> List[str]:
        """Read the header row (A1:Z1). Read-only: headers are never rewritten."""
        sheet = self.resolve_sheet_name()
        data = self._request("GET", self._values_path(_a1(sheet, "A1:Z1")))
        rows = data.get("values") or []
        if rows:
            logger.debug(f"Found existing headers: {rows[0]}")
            if len(rows[0]) < len(HEADER):
                logger.warning(
                    f"Sheet header has {len(rows[0])} columns, expected {len(HEADER)}"
                )
            return [str(v) for v in rows[0]]
        logger.info("No headers found in the sheet")
        return []

    def fetch_rows(self) -> List[List[str]]:
        sheet = self.resolve_sheet_name()
        if not self._header_checked:
            self.header()
            self._header_checked = True
        data = self._request("GET", self._values_path(_a1(sheet)))
        rows = data.get("values") or []
        logger.info(f"Fetched {max(len(rows) - 1, 0)} data rows from {sheet}")
        return [["" if v is None else str(v) for v in row] for row in rows]

    def append_row(self, values: Sequence[Any]) -> None:
        sheet = self.resolve_sheet_name()
        self._request(
            "POST",
            self._values_path(_a1(sheet, "A1"), ":append"),
            params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
            json={"values": [list(values)]},
        )

    def write_cell(self, column: str, row_number: int, value: Any) -> None:
        sheet = self.resolve_sheet_name()
        cell = _a1(sheet, f"{column}{row_number}")
        self._request(
            "PUT",
            self._values_path(cell),
            params={"valueInputOption": "USER_ENTERED"},
            json={"range": cell, "values": [[value]]},
        )
