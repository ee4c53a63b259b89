"""
Google Sheets Import Source

Many users keep a running expense sheet on Google Sheets. This source
reads one worksheet and hands its rows to the same Tabular Parser logic
the CSV import uses, so a sheet and its CSV export import identically.

Authentication uses a service account; share the sheet with the service
account's email as a Viewer.
"""

import asyncio
from pathlib import Path
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_ledger.config import GoogleSheetsSettings, get_settings
from expense_ledger.imports.tabular import clean_rows, rows_to_records


READ_ONLY_SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "https://www.googleapis.com/auth/drive.readonly",
]


class SheetSourceError(Exception):
    """Could not read the configured spreadsheet."""
    pass


class GoogleSheetsSource:
    """
    Reads expense rows from one worksheet.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        client: Optional[gspread.Client] = None,
    ):
        self._settings = settings or get_settings().google_sheets
        self._client = client

    @property
    def label(self) -> str:
        worksheet = self._settings.worksheet_name or "first worksheet"
        return f"google-sheets:{self._settings.spreadsheet_id}/{worksheet}"

    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets with service account credentials.

        A missing or malformed credentials file fails at once; only the
        authorization round-trip is retried.
        """
        if self._client is None:
            if not Path(self._settings.credentials_path).exists():
                raise SheetSourceError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            try:
                self._client = self._authorize()
            except Exception as e:
                raise SheetSourceError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(ValueError),
        reraise=True,
    )
    def _authorize(self) -> gspread.Client:
        # ValueError means unusable credentials: retrying cannot fix it
        credentials = Credentials.from_service_account_file(
            self._settings.credentials_path,
            scopes=READ_ONLY_SCOPES,
        )
        return gspread.authorize(credentials)

    def get_worksheet(self) -> gspread.Worksheet:
        client = self.connect()
        try:
            spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            if self._settings.worksheet_name:
                return spreadsheet.worksheet(self._settings.worksheet_name)
            return spreadsheet.get_worksheet(0)
        except gspread.SpreadsheetNotFound:
            raise SheetSourceError(
                f"Spreadsheet not found: {self._settings.spreadsheet_id}"
            )
        except gspread.WorksheetNotFound:
            raise SheetSourceError(
                f"Worksheet not found: {self._settings.worksheet_name}"
            )
        except gspread.exceptions.APIError as e:
            raise SheetSourceError(f"Google Sheets API error: {e}")

    def read_rows(self) -> list[list[str]]:
        worksheet = self.get_worksheet()
        try:
            return clean_rows(worksheet.get_all_values())
        except gspread.exceptions.APIError as e:
            raise SheetSourceError(f"Google Sheets API error: {e}")

    async def fetch_records(self) -> list[dict[str, str]]:
        """
        Read the worksheet as attribute bags.

        gspread is synchronous; the read runs in a worker thread so the
        caller's event loop stays responsive.

        Raises:
            SheetSourceError: If the sheet cannot be reached or read
        """
        rows = await asyncio.to_thread(self.read_rows)
        return rows_to_records(rows)
