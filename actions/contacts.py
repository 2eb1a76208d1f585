"""
Contacts facades: modify, delete, bulkDelete.
"""

from typing import Any, Mapping

from models import BulkDeleteTarget, Contact, error_from_code
from oauth_config import sheet_url
from rpc.core import RpcContext
from validation import (
    coerce_int,
    first_present,
    missing_fields,
    optional_string,
    require_string,
    string_list,
    trimmed,
)

from .base import Action

BULK_DELETE_EXAMPLES = {
    "byEmail": {"emails": ["john@example.com"]},
    "byRowId": {"rowIds": [3, 5]},
}

# Row 1 is the header
FIRST_DATA_ROW = 2


def parse_bulk_delete_target(payload: Mapping[str, Any] | None) -> BulkDeleteTarget:
    """
    Emails win over row ids when both are given.

    Raises:
        ConciergeError: 400 CONTACT_BULK_TARGET_REQUIRED when neither is a
            non-empty list (an absent payload included).
    """
    payload = payload or {}
    emails = payload.get("emails")
    row_ids = payload.get("rowIds")

    if isinstance(emails, list) and emails:
        targets = string_list(emails, "emails")
        if targets:
            return BulkDeleteTarget(mode="emails", emails=targets)

    if isinstance(row_ids, list) and row_ids:
        rows = [coerce_int(row, "rowIds") for row in row_ids]
        invalid = [row for row in rows if row < FIRST_DATA_ROW]
        if invalid:
            raise error_from_code(
                "CONTACT_BULK_TARGET_REQUIRED",
                f"rowIds must be sheet rows >= {FIRST_DATA_ROW} (row 1 is the header)",
                details={"invalid": invalid, "examples": BULK_DELETE_EXAMPLES},
            )
        return BulkDeleteTarget(mode="rowIds", row_ids=sorted(set(rows)))

    raise error_from_code(
        "CONTACT_BULK_TARGET_REQUIRED",
        "bulkDelete requires emails[] or rowIds[]",
        details={"examples": BULK_DELETE_EXAMPLES},
    )


async def modify(ctx: RpcContext, payload: dict[str, Any] | None) -> dict[str, Any]:
    payload = payload or {}
    missing = missing_fields(payload, ("name", "email"))
    if missing:
        raise error_from_code(
            "CONTACT_NAME_AND_EMAIL_REQUIRED",
            "Missing required fields: name, email",
            details={"fields": ["name", "email"]},
        )

    # Non-string name or email is a 400
    contact = Contact(
        name=require_string(payload, "name"),
        email=require_string(payload, "email"),
        notes=optional_string(payload, "notes") or "",
        real_estate=trimmed(first_present(payload, ("realEstate", "realestate"))) or "",
        phone=optional_string(payload, "phone") or "",
    )
    saved = await ctx.backends.contacts.update_contact(ctx.identity, contact)
    return {
        "contact": saved,
        "message": "Contact updated successfully",
        "sheetUrl": sheet_url(saved.get("spreadsheetId")),
    }


async def delete(ctx: RpcContext, payload: dict[str, Any] | None) -> dict[str, Any]:
    payload = payload or {}
    email = trimmed(payload.get("email"))
    name = trimmed(payload.get("name"))
    if not email and not name:
        raise error_from_code(
            "CONTACT_IDENTIFIER_REQUIRED",
            "At least one of email or name must be provided",
            details={"fields": ["email", "name"]},
        )

    result = await ctx.backends.contacts.delete_contact(ctx.identity, email, name)
    return {
        "deleted": result.get("deleted"),
        "message": "Contact deleted successfully",
        "sheetUrl": sheet_url(result.get("spreadsheetId")),
    }


async def bulk_delete(ctx: RpcContext, payload: dict[str, Any] | None) -> dict[str, Any]:
    target = parse_bulk_delete_target(payload)
    result = await ctx.backends.contacts.bulk_delete(ctx.identity, target)
    return {"deleted": result.get("deleted", 0), "mode": target.mode}


CONTACT_ACTIONS: Mapping[str, Action] = {
    "modify": Action("contacts", "modify", modify, "CONTACT_MODIFY_FAILED"),
    "delete": Action("contacts", "delete", delete, "CONTACT_DELETE_FAILED"),
    "bulkDelete": Action("contacts", "bulkDelete", bulk_delete, "CONTACT_BULK_DELETE_FAILED"),
}
