"""Google Sheets export: appends analytics rows via the Sheets v4 REST API.

Requires:
- google-auth for service-account OAuth2 tokens
- httpx for the async HTTP request

The append is purely additive (no dedup); the sheet is an audit trail, the
session_analytics table is the source of truth.
"""

import asyncio
import logging
import os
from typing import Any, Optional
from urllib.parse import quote

import httpx
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from campus_pulse.config import Settings

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
APPEND_URL = "https://sheets.googleapis.com/v4/spreadsheets/{sheet_id}/values/{range}:append"


class SheetsExportError(RuntimeError):
    """Raised when the Sheets API rejects an append."""


class SheetsClient:
    """Thin async wrapper over spreadsheets.values.append."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.credentials_path = settings.GOOGLE_SERVICE_ACCOUNT_FILE
        self.sheet_id = settings.GOOGLE_SHEET_ID
        self.transport = transport
        self._credentials = None

    @property
    def configured(self) -> bool:
        return bool(self.sheet_id and self.credentials_path)

    def _load_credentials(self):
        if self._credentials is None:
            if not os.path.exists(self.credentials_path):
                raise SheetsExportError(f"Credentials file not found: {self.credentials_path}")
            self._credentials = service_account.Credentials.from_service_account_file(
                self.credentials_path,
                scopes=SHEETS_SCOPES,
            )
        return self._credentials

    def _access_token(self) -> str:
        credentials = self._load_credentials()
        if not credentials.valid:
            credentials.refresh(Request())
        return credentials.token

    async def append_rows(self, cell_range: str, rows: list[list[Any]]) -> dict:
        """Append rows after the last filled row of cell_range.

        Returns the API's update summary, or {} when nothing was sent.
        """
        if not rows:
            return {}
        if not self.configured:
            logger.warning("Sheets export skipped: GOOGLE_SHEET_ID or service account not set")
            return {}

        # Token refresh is a blocking HTTP call
        token = await asyncio.to_thread(self._access_token)
        url = APPEND_URL.format(sheet_id=self.sheet_id, range=quote(cell_range, safe="!:"))

        async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
            response = await client.post(
                url,
                params={"valueInputOption": "RAW"},
                headers={"Authorization": f"Bearer {token}"},
                json={"values": rows},
            )

        if response.status_code != 200:
            raise SheetsExportError(f"Sheets append failed ({response.status_code}): {response.text}")

        updates = response.json().get("updates", {})
        logger.info("Appended %s rows to %s", updates.get("updatedRows", len(rows)), cell_range)
        return updates
