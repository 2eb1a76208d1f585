"""
Tests for the Sheets-backed contacts adapter.

Drive and Sheets services are mocked; rows come from values.get.
"""

from unittest.mock import MagicMock, patch

import pytest

from adapters.contacts import SheetsContactsBackend, _delete_rows_request, _row_to_contact
from models import BulkDeleteTarget, ConciergeError, Contact, Identity
from tests.helpers import mock_api_chain

IDENTITY = Identity(access_token="t", email="me@example.com")

ROWS = [
    ["Jane Doe", "jane@example.com", "", "Main St 1", "555"],
    ["John Roe", "john@example.com"],
    ["Jane Doe", "JANE@example.com", "work"],
]


@pytest.fixture
def drive() -> MagicMock:
    service = MagicMock()
    mock_api_chain(service, "files.list.execute", {"files": [{"id": "S1", "name": "MCP1 Contacts"}]})
    return service


@pytest.fixture
def sheets() -> MagicMock:
    service = MagicMock()
    mock_api_chain(service, "spreadsheets.values.get.execute", {"values": ROWS})
    return service


@pytest.fixture
def backend(drive: MagicMock, sheets: MagicMock):
    with patch("adapters.contacts.get_drive_service", return_value=drive), \
            patch("adapters.contacts.get_sheets_service", return_value=sheets):
        yield SheetsContactsBackend()


class TestHelpers:

    def test_short_row_padded(self) -> None:
        contact = _row_to_contact(["A", "a@example.com"], 0)
        assert contact == Contact(name="A", email="a@example.com", row_index=2)

    def test_delete_rows_bottom_up(self) -> None:
        request = _delete_rows_request([3, 7, 3])
        ranges = [r["deleteDimension"]["range"] for r in request["requests"]]
        assert [(r["startIndex"], r["endIndex"]) for r in ranges] == [(6, 7), (2, 3)]
        assert all(r["sheetId"] == 0 for r in ranges)


class TestSheetDiscovery:

    @pytest.mark.asyncio
    async def test_sheet_id_cached(self, backend: SheetsContactsBackend, drive: MagicMock) -> None:
        await backend.list_all_contacts(IDENTITY)
        await backend.list_all_contacts(IDENTITY)
        assert drive.files().list.call_count == 1

    @pytest.mark.asyncio
    async def test_creates_sheet_when_missing(
        self, backend: SheetsContactsBackend, drive: MagicMock, sheets: MagicMock
    ) -> None:
        mock_api_chain(drive, "files.list.execute", {"files": []})
        mock_api_chain(sheets, "spreadsheets.create.execute", {"spreadsheetId": "NEW"})
        mock_api_chain(sheets, "spreadsheets.values.update.execute", {})

        assert await backend.spreadsheet_id(IDENTITY) == "NEW"
        header = sheets.spreadsheets().values().update.call_args.kwargs
        assert header["range"] == "A1:E1"
        assert header["body"] == {"values": [["Name", "Email", "Notes", "RealEstate", "Phone"]]}


class TestReads:

    @pytest.mark.asyncio
    async def test_list(self, backend: SheetsContactsBackend) -> None:
        result = await backend.list_all_contacts(IDENTITY)
        assert result["count"] == 3
        assert result["spreadsheetId"] == "S1"
        assert result["contacts"][0]["realEstate"] == "Main St 1"
        assert result["contacts"][1]["rowIndex"] == 3

    @pytest.mark.asyncio
    async def test_search_any_column(self, backend: SheetsContactsBackend) -> None:
        result = await backend.search_contacts(IDENTITY, "MAIN st")
        assert [c["name"] for c in result["contacts"]] == ["Jane Doe"]

    @pytest.mark.asyncio
    async def test_duplicates_by_email(self, backend: SheetsContactsBackend) -> None:
        result = await backend.find_duplicates(IDENTITY)
        assert result["count"] == 1
        assert result["totalDuplicateContacts"] == 2
        assert [c["rowIndex"] for c in result["duplicates"][0]] == [2, 4]

    @pytest.mark.asyncio
    async def test_address_suggestions(self, backend: SheetsContactsBackend) -> None:
        result = await backend.get_address_suggestions(IDENTITY, "main")
        assert result["suggestions"][0]["realEstate"] == "Main St 1"


class TestWrites:

    @pytest.mark.asyncio
    async def test_add_reports_duplicates(self, backend: SheetsContactsBackend, sheets: MagicMock) -> None:
        mock_api_chain(sheets, "spreadsheets.values.append.execute", {})
        result = await backend.add_contact(IDENTITY, Contact(name="J", email="john@example.com"))
        assert result["spreadsheetId"] == "S1"
        assert [d["rowIndex"] for d in result["duplicates"]] == [3]
        appended = sheets.spreadsheets().values().append.call_args.kwargs
        assert appended["body"] == {"values": [["J", "john@example.com", "", "", ""]]}

    @pytest.mark.asyncio
    async def test_update_rewrites_matching_row(
        self, backend: SheetsContactsBackend, sheets: MagicMock
    ) -> None:
        mock_api_chain(sheets, "spreadsheets.values.update.execute", {})
        result = await backend.update_contact(
            IDENTITY, Contact(name="john roe", email="John@Example.com", phone="123")
        )
        assert result["action"] == "updated"
        assert result["rowIndex"] == 3
        assert sheets.spreadsheets().values().update.call_args.kwargs["range"] == "A3:E3"

    @pytest.mark.asyncio
    async def test_update_appends_when_no_match(
        self, backend: SheetsContactsBackend, sheets: MagicMock
    ) -> None:
        mock_api_chain(sheets, "spreadsheets.values.append.execute", {})
        result = await backend.update_contact(IDENTITY, Contact(name="New", email="new@example.com"))
        assert result["action"] == "added"
        sheets.spreadsheets().values().update.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_ambiguous(self, backend: SheetsContactsBackend, sheets: MagicMock) -> None:
        with pytest.raises(ConciergeError) as exc_info:
            await backend.delete_contact(IDENTITY, "jane@example.com", None)
        assert exc_info.value.code == "AMBIGUOUS_DELETE"
        assert len(exc_info.value.details["candidates"]) == 2
        sheets.spreadsheets().batchUpdate.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_not_found(self, backend: SheetsContactsBackend) -> None:
        with pytest.raises(ConciergeError) as exc_info:
            await backend.delete_contact(IDENTITY, "nobody@example.com", None)
        assert exc_info.value.code == "CONTACT_NOT_FOUND"
        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_delete_single(self, backend: SheetsContactsBackend, sheets: MagicMock) -> None:
        mock_api_chain(sheets, "spreadsheets.batchUpdate.execute", {})
        result = await backend.delete_contact(IDENTITY, "john@example.com", None)
        assert result["deleted"]["rowIndex"] == 3
        body = sheets.spreadsheets().batchUpdate.call_args.kwargs["body"]
        assert body["requests"][0]["deleteDimension"]["range"]["startIndex"] == 2

    @pytest.mark.asyncio
    async def test_bulk_delete_by_email(self, backend: SheetsContactsBackend, sheets: MagicMock) -> None:
        mock_api_chain(sheets, "spreadsheets.batchUpdate.execute", {})
        result = await backend.bulk_delete(
            IDENTITY, BulkDeleteTarget(mode="emails", emails=["jane@example.com"])
        )
        assert result == {"deleted": 2}
        body = sheets.spreadsheets().batchUpdate.call_args.kwargs["body"]
        starts = [r["deleteDimension"]["range"]["startIndex"] for r in body["requests"]]
        assert starts == [3, 1]

    @pytest.mark.asyncio
    async def test_bulk_delete_nothing_matches(self, backend: SheetsContactsBackend, sheets: MagicMock) -> None:
        result = await backend.bulk_delete(
            IDENTITY, BulkDeleteTarget(mode="emails", emails=["nobody@example.com"])
        )
        assert result == {"deleted": 0}
        sheets.spreadsheets().batchUpdate.assert_not_called()
