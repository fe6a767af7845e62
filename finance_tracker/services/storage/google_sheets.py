"""
Google Sheets Remote Document Store

DESIGN DECISION: Google Sheets is used as the remote mirror because:
1. The user can inspect their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (per-profile collections are small)
- No transactions (full-replace writes are last-writer-wins)
- No query capabilities (documents are fetched whole)

Each collection path (`profiles/{profile}/transactions`, ...) maps to one
worksheet. Each document is one row: [doc_id, json-encoded data].
"""

import asyncio
import json
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_tracker.config import GoogleSheetsSettings, get_settings
from finance_tracker.services.storage.interface import (
    RemoteStore,
    RemoteUnavailableError,
)


DOCUMENT_COLUMNS = ["doc_id", "data_json"]


def worksheet_title(path: str) -> str:
    """Worksheet title for a collection path (`a/b/c` -> `a.b.c`)."""
    return path.strip("/").replace("/", ".")[:100]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise RemoteUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise RemoteUnavailableError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise RemoteUnavailableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_collection_sheet(self, path: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        spreadsheet = self.get_spreadsheet()
        title = worksheet_title(path)
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(DOCUMENT_COLUMNS),
            )
            sheet.append_row(DOCUMENT_COLUMNS)
        return sheet


class GoogleSheetsDocumentStore(RemoteStore):
    """
    Google Sheets implementation of the remote document store.

    gspread is blocking, so every call runs in a worker thread and the
    event loop stays free while the request is in flight.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _doc_to_row(doc_id: str, data: dict) -> list:
        return [doc_id, json.dumps(data, ensure_ascii=False)]

    @staticmethod
    def _rows_to_docs(rows: list[list]) -> dict[str, dict]:
        docs = {}
        for row in rows:
            if len(row) < 2 or not row[0]:
                continue
            try:
                docs[row[0]] = json.loads(row[1])
            except ValueError:
                continue  # Skip malformed rows
        return docs

    def _fetch(self, path: str) -> dict[str, dict]:
        sheet = self._client.get_collection_sheet(path)
        return self._rows_to_docs(sheet.get_all_values()[1:])

    def _set(self, path: str, doc_id: str, data: dict) -> None:
        sheet = self._client.get_collection_sheet(path)
        row = self._doc_to_row(doc_id, data)
        for idx, existing in enumerate(sheet.get_all_values()[1:], start=2):
            if existing and existing[0] == doc_id:
                sheet.update(range_name=f"A{idx}:B{idx}", values=[row])
                return
        sheet.append_row(row, value_input_option="RAW")

    def _delete(self, path: str, doc_id: str) -> None:
        sheet = self._client.get_collection_sheet(path)
        for idx, existing in enumerate(sheet.get_all_values()[1:], start=2):
            if existing and existing[0] == doc_id:
                sheet.delete_rows(idx)
                return

    def _replace(self, path: str, docs: dict[str, dict]) -> None:
        sheet = self._client.get_collection_sheet(path)
        rows = [DOCUMENT_COLUMNS] + [
            self._doc_to_row(doc_id, data) for doc_id, data in docs.items()
        ]
        sheet.clear()
        sheet.append_rows(rows, value_input_option="RAW")

    async def _run(self, operation: str, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except RemoteUnavailableError:
            raise
        except Exception as e:
            raise RemoteUnavailableError(f"Google Sheets {operation} failed: {e}") from e

    async def fetch_collection(self, path: str) -> dict[str, dict]:
        return await self._run("fetch", self._fetch, path)

    async def set_document(self, path: str, doc_id: str, data: dict) -> None:
        await self._run("set", self._set, path, doc_id, data)

    async def delete_document(self, path: str, doc_id: str) -> None:
        await self._run("delete", self._delete, path, doc_id)

    async def replace_collection(self, path: str, docs: dict[str, dict]) -> None:
        await self._run("replace", self._replace, path, docs)
