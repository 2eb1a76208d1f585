"""
Contacts adapter: a Google Sheet as the contacts store.

One spreadsheet per user (found via Drive, created on first use) with a
header row and columns Name | Email | Notes | RealEstate | Phone.
Data starts at row 2, so rowIndex = list index + 2.

Adds never merge: duplicates by email are reported, not resolved.
"""

from typing import Any

from adapters.scoring import suggest_addresses
from adapters.services import execute, get_drive_service, get_sheets_service
from logging_config import log_api_call, log_api_result, logger
from models import BulkDeleteTarget, Contact, Identity, error_from_code
from oauth_config import CONTACTS_HEADER, CONTACTS_RANGE, CONTACTS_SHEET_NAME
from retry import with_retry

SPREADSHEET_MIME = "application/vnd.google-apps.spreadsheet"

# The sheet created by _create_sheet always has id 0
SHEET_ID = 0
FIRST_DATA_ROW = 2
APPEND_RANGE = "A:E"


def _row_to_contact(row: list[str], index: int) -> Contact:
    """Sheet row (possibly short) to Contact; index is 0-based from row 2."""
    cells = list(row) + [""] * (len(CONTACTS_HEADER) - len(row))
    return Contact(
        name=cells[0],
        email=cells[1],
        notes=cells[2],
        real_estate=cells[3],
        phone=cells[4],
        row_index=index + FIRST_DATA_ROW,
    )


def _contact_to_row(contact: Contact) -> list[str]:
    return [contact.name, contact.email, contact.notes, contact.real_estate, contact.phone]


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def _delete_rows_request(rows: list[int]) -> dict[str, Any]:
    """deleteDimension requests, bottom row first so indexes stay valid."""
    return {
        "requests": [
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": SHEET_ID,
                        "dimension": "ROWS",
                        "startIndex": row - 1,
                        "endIndex": row,
                    }
                }
            }
            for row in sorted(set(rows), reverse=True)
        ]
    }


class SheetsContactsBackend:
    """Contacts backend on the caller's contacts spreadsheet."""

    def __init__(self, sheet_name: str = CONTACTS_SHEET_NAME):
        self.sheet_name = sheet_name
        # identity.key -> spreadsheet id
        self._sheet_ids: dict[str, str] = {}

    # -------------------------------------------------------------------------
    # Sheet plumbing
    # -------------------------------------------------------------------------

    async def _find_sheet(self, identity: Identity) -> str | None:
        drive = get_drive_service(identity)
        log_api_call("drive", "files.list", name=self.sheet_name)
        response = await execute(
            drive.files().list(
                q=(
                    f"name='{self.sheet_name}' and mimeType='{SPREADSHEET_MIME}' "
                    "and trashed=false"
                ),
                fields="files(id, name)",
                spaces="drive",
            )
        )
        files = response.get("files", [])
        return files[0]["id"] if files else None

    async def _create_sheet(self, identity: Identity) -> str:
        sheets = get_sheets_service(identity)
        log_api_call("sheets", "spreadsheets.create", title=self.sheet_name)
        created = await execute(
            sheets.spreadsheets().create(
                body={
                    "properties": {"title": self.sheet_name},
                    "sheets": [{
                        "properties": {
                            "sheetId": SHEET_ID,
                            "title": "Sheet1",
                            "gridProperties": {"rowCount": 10000, "columnCount": 5},
                        }
                    }],
                }
            )
        )
        spreadsheet_id = created["spreadsheetId"]
        await execute(
            sheets.spreadsheets().values().update(
                spreadsheetId=spreadsheet_id,
                range="A1:E1",
                valueInputOption="RAW",
                body={"values": [CONTACTS_HEADER]},
            )
        )
        logger.info(f"Created contacts sheet {spreadsheet_id}")
        return spreadsheet_id

    async def spreadsheet_id(self, identity: Identity) -> str:
        """Find or create the caller's contacts sheet."""
        cached = self._sheet_ids.get(identity.key)
        if cached:
            return cached
        spreadsheet_id = await self._find_sheet(identity) or await self._create_sheet(identity)
        self._sheet_ids[identity.key] = spreadsheet_id
        return spreadsheet_id

    async def _rows(self, identity: Identity) -> tuple[str, list[Contact]]:
        spreadsheet_id = await self.spreadsheet_id(identity)
        sheets = get_sheets_service(identity)
        log_api_call("sheets", "values.get", range=CONTACTS_RANGE)
        response = await execute(
            sheets.spreadsheets().values().get(
                spreadsheetId=spreadsheet_id, range=CONTACTS_RANGE
            )
        )
        contacts = [_row_to_contact(row, i) for i, row in enumerate(response.get("values", []))]
        log_api_result("sheets", "values.get", len(contacts))
        return spreadsheet_id, contacts

    async def _append(self, identity: Identity, spreadsheet_id: str, contacts: list[Contact]) -> None:
        sheets = get_sheets_service(identity)
        log_api_call("sheets", "values.append", rows=len(contacts))
        await execute(
            sheets.spreadsheets().values().append(
                spreadsheetId=spreadsheet_id,
                range=APPEND_RANGE,
                valueInputOption="RAW",
                body={"values": [_contact_to_row(c) for c in contacts]},
            )
        )

    async def _delete_rows(self, identity: Identity, spreadsheet_id: str, rows: list[int]) -> None:
        sheets = get_sheets_service(identity)
        log_api_call("sheets", "batchUpdate", deleteRows=sorted(rows, reverse=True))
        await execute(
            sheets.spreadsheets().batchUpdate(
                spreadsheetId=spreadsheet_id, body=_delete_rows_request(rows)
            )
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @with_retry(max_attempts=3, delay_ms=1000)
    async def list_all_contacts(self, identity: Identity) -> dict[str, Any]:
        spreadsheet_id, contacts = await self._rows(identity)
        return {
            "contacts": [c.to_dict() for c in contacts],
            "count": len(contacts),
            "spreadsheetId": spreadsheet_id,
        }

    @with_retry(max_attempts=3, delay_ms=1000)
    async def search_contacts(self, identity: Identity, query: str) -> dict[str, Any]:
        """Case-insensitive substring match on every column."""
        _, contacts = await self._rows(identity)
        needle = _norm(query)
        matches = [
            c.to_dict() for c in contacts
            if any(needle in _norm(cell) for cell in _contact_to_row(c))
        ]
        return {"contacts": matches, "count": len(matches)}

    @with_retry(max_attempts=3, delay_ms=1000)
    async def get_address_suggestions(self, identity: Identity, query: str) -> dict[str, Any]:
        """Up to three RealEstate values closest to a partial address."""
        _, contacts = await self._rows(identity)
        return {"suggestions": suggest_addresses(query, [c.real_estate for c in contacts])}

    @with_retry(max_attempts=3, delay_ms=1000)
    async def find_duplicates(self, identity: Identity) -> dict[str, Any]:
        """Groups of two or more rows sharing an email, largest first."""
        _, contacts = await self._rows(identity)
        groups: dict[str, list[dict[str, Any]]] = {}
        for contact in contacts:
            email = _norm(contact.email)
            if email:
                groups.setdefault(email, []).append(contact.to_dict())
        duplicates = sorted(
            (group for group in groups.values() if len(group) > 1),
            key=len,
            reverse=True,
        )
        return {
            "duplicates": duplicates,
            "count": len(duplicates),
            "totalDuplicateContacts": sum(len(group) for group in duplicates),
        }

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @with_retry(max_attempts=3, delay_ms=1000)
    async def add_contact(self, identity: Identity, contact: Contact) -> dict[str, Any]:
        """Append a row; existing rows with the same email are reported."""
        spreadsheet_id, existing = await self._rows(identity)
        duplicates = [c.to_dict() for c in existing if _norm(c.email) == _norm(contact.email)]
        await self._append(identity, spreadsheet_id, [contact])
        result: dict[str, Any] = {**contact.to_dict(), "spreadsheetId": spreadsheet_id}
        if duplicates:
            result["duplicates"] = duplicates
        return result

    @with_retry(max_attempts=3, delay_ms=1000)
    async def bulk_upsert(self, identity: Identity, contacts: list[Contact]) -> dict[str, Any]:
        """Append every contact in one call; report emails that already existed."""
        spreadsheet_id, existing = await self._rows(identity)
        by_email: dict[str, list[dict[str, Any]]] = {}
        for row in existing:
            if _norm(row.email):
                by_email.setdefault(_norm(row.email), []).append(row.to_dict())

        await self._append(identity, spreadsheet_id, contacts)

        duplicates = [
            {
                "email": _norm(c.email),
                "newContact": c.to_dict(),
                "existing": by_email[_norm(c.email)],
            }
            for c in contacts
            if _norm(c.email) in by_email
        ]
        result: dict[str, Any] = {"inserted": len(contacts), "spreadsheetId": spreadsheet_id}
        if duplicates:
            result["duplicates"] = duplicates
        return result

    @with_retry(max_attempts=3, delay_ms=1000)
    async def update_contact(self, identity: Identity, contact: Contact) -> dict[str, Any]:
        """Rewrite the row matching name + email, or append when none matches."""
        spreadsheet_id, existing = await self._rows(identity)
        match = next(
            (
                c for c in existing
                if _norm(c.name) == _norm(contact.name) and _norm(c.email) == _norm(contact.email)
            ),
            None,
        )
        if match is None:
            await self._append(identity, spreadsheet_id, [contact])
            return {**contact.to_dict(), "action": "added", "spreadsheetId": spreadsheet_id}

        row = match.row_index
        sheets = get_sheets_service(identity)
        log_api_call("sheets", "values.update", row=row)
        await execute(
            sheets.spreadsheets().values().update(
                spreadsheetId=spreadsheet_id,
                range=f"A{row}:E{row}",
                valueInputOption="RAW",
                body={"values": [_contact_to_row(contact)]},
            )
        )
        return {
            **contact.to_dict(),
            "rowIndex": row,
            "action": "updated",
            "spreadsheetId": spreadsheet_id,
        }

    @with_retry(max_attempts=3, delay_ms=1000)
    async def delete_contact(
        self, identity: Identity, email: str | None, name: str | None
    ) -> dict[str, Any]:
        """
        Delete exactly one row matched by email and/or name.

        Raises:
            ConciergeError: CONTACT_NOT_FOUND (404) when nothing matches,
                AMBIGUOUS_DELETE (409) when several rows do.
        """
        spreadsheet_id, existing = await self._rows(identity)
        matches = [
            (c.row_index, c) for c in existing
            if c.row_index
            and (not email or _norm(c.email) == _norm(email))
            and (not name or _norm(c.name) == _norm(name))
        ]
        label = f"{name} ({email})" if name and email else (email or name)

        if not matches:
            raise error_from_code(
                "CONTACT_NOT_FOUND",
                f"Contact not found: {label}",
                details={"email": email, "name": name},
            )
        if len(matches) > 1:
            raise error_from_code(
                "AMBIGUOUS_DELETE",
                f"{len(matches)} contacts match {label}. Add the other field, "
                "or delete by rowIds via bulkDelete.",
                details={"candidates": [c.to_dict() for _, c in matches], "email": email, "name": name},
            )

        row_index, target = matches[0]
        await self._delete_rows(identity, spreadsheet_id, [row_index])
        return {"deleted": target.to_dict(), "spreadsheetId": spreadsheet_id}

    @with_retry(max_attempts=3, delay_ms=1000)
    async def bulk_delete(self, identity: Identity, target: BulkDeleteTarget) -> dict[str, Any]:
        """
        Delete every row with one of the emails, or exactly the given rows.

        Rows are removed bottom-up in one batchUpdate.
        """
        spreadsheet_id = await self.spreadsheet_id(identity)
        if target.mode == "emails":
            _, existing = await self._rows(identity)
            wanted = {_norm(e) for e in target.emails}
            rows = [c.row_index for c in existing if _norm(c.email) in wanted and c.row_index]
        else:
            rows = list(target.row_ids)

        if not rows:
            return {"deleted": 0}
        await self._delete_rows(identity, spreadsheet_id, rows)
        return {"deleted": len(set(rows))}
