"""
Contacts RPC: `POST /api/rpc/contacts`.

Read operations plus add and bulk upsert. update/delete/bulkDelete are
disabled here and answer 410 with the facade endpoints.
"""

from typing import Any, Mapping

from models import ConciergeError, Contact, ErrorKind, error_from_code, invalid_param
from rpc.core import Dispatcher, RpcContext
from rpc.deprecation import CONTACTS_REDIRECTS
from rpc.normalizer import CONTACTS_ROOT_KEYS
from validation import first_present, missing_fields, optional_string, require_string, trimmed

CONTACT_FORMAT = {
    "name": "Jane Doe",
    "email": "jane@example.com",
    "notes": "optional",
    "realEstate": "optional",
    "phone": "optional",
}

DEDUPE_STRATEGIES = ("report", "merge")


def contact_from_params(params: Mapping[str, Any]) -> Contact:
    """
    Build a Contact from loose params. name and email are required.

    `realestate` is accepted as an alias of `realEstate`.
    """
    missing = missing_fields(params, ("name", "email"))
    if missing:
        raise invalid_param(
            f"Missing required fields: {', '.join(missing)}", expected_format=CONTACT_FORMAT
        )
    return Contact(
        name=require_string(params, "name"),
        email=require_string(params, "email"),
        notes=optional_string(params, "notes") or "",
        real_estate=trimmed(first_present(params, ("realEstate", "realestate"))) or "",
        phone=optional_string(params, "phone") or "",
    )


async def _list(ctx: RpcContext, params: dict[str, Any]) -> Any:
    return await ctx.backends.contacts.list_all_contacts(ctx.identity)


async def _search(ctx: RpcContext, params: dict[str, Any]) -> Any:
    return await ctx.backends.contacts.search_contacts(
        ctx.identity, require_string(params, "query")
    )


async def _add(ctx: RpcContext, params: dict[str, Any]) -> Any:
    return await ctx.backends.contacts.add_contact(ctx.identity, contact_from_params(params))


async def _dedupe(ctx: RpcContext, params: dict[str, Any]) -> Any:
    strategy = optional_string(params, "strategy") or "report"
    if strategy == "merge":
        raise ConciergeError(
            ErrorKind.NOT_IMPLEMENTED,
            "Automatic merging of duplicates is not available yet. "
            "Use strategy 'report' and resolve duplicates manually.",
            code="NOT_IMPLEMENTED",
        )
    if strategy not in DEDUPE_STRATEGIES:
        raise error_from_code(
            "DEDUPE_STRATEGY_UNSUPPORTED",
            f"Unsupported dedupe strategy: {strategy}",
            details={"supported": list(DEDUPE_STRATEGIES)},
        )
    return await ctx.backends.contacts.find_duplicates(ctx.identity)


async def _bulk_upsert(ctx: RpcContext, params: dict[str, Any]) -> Any:
    entries = first_present(params, ("contacts", "entries"))
    if not isinstance(entries, list) or not entries:
        raise invalid_param(
            "Field 'contacts' must be a non-empty array",
            expected_format={"contacts": [CONTACT_FORMAT]},
        )
    contacts: list[Contact] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise invalid_param(f"contacts[{index}] must be an object")
        try:
            contacts.append(contact_from_params(entry))
        except ConciergeError as exc:
            raise invalid_param(
                f"contacts[{index}]: {exc.message}", expected_format=CONTACT_FORMAT
            ) from exc
    return await ctx.backends.contacts.bulk_upsert(ctx.identity, contacts)


async def _address_suggest(ctx: RpcContext, params: dict[str, Any]) -> Any:
    return await ctx.backends.contacts.get_address_suggestions(
        ctx.identity, require_string(params, "query")
    )


contacts_rpc = Dispatcher(
    domain="contacts",
    handlers={
        "list": _list,
        "search": _search,
        "add": _add,
        "dedupe": _dedupe,
        "bulkUpsert": _bulk_upsert,
        "addressSuggest": _address_suggest,
    },
    root_keys=CONTACTS_ROOT_KEYS,
    redirects=CONTACTS_REDIRECTS,
)
