"""
Mail RPC: `POST /api/rpc/mail`.

Operations: search, read, send, createDraft, updateDraft, listDrafts,
getDraft, reply, modify, attachmentPreview, labels.

Each handler parses its params into one typed object, then makes one
backend call (or a bounded fan-out for multi-message operations).
"""

from email.utils import getaddresses
from typing import Any, Mapping

from models import (
    AttachmentPreviewParams,
    Identity,
    LabelsParams,
    MessageDraft,
    ModifyParams,
    ReadParams,
    ReplyParams,
    SendDraftParams,
    SendMessageParams,
    UpdateDraftParams,
    error_from_code,
    invalid_param,
)
from rpc.core import Dispatcher, RpcContext, gather_bounded, parse_page_query
from rpc.normalizer import MAIL_ROOT_KEYS
from validation import (
    coerce_bool,
    missing_fields,
    optional_int,
    optional_string,
    require_string,
    sanitize_gmail_query,
    string_list,
)

READ_FORMATS = frozenset({"full", "metadata", "minimal"})
SEARCH_FALLBACK_LIMIT = 10

PREVIEW_MODES = frozenset({"text", "table"})
PREVIEW_MAX_ROWS = 200
PREVIEW_DEFAULT_KB = 256
PREVIEW_DELIMITERS = frozenset({"auto", ",", ";", "\t", "|"})

LABEL_ACTIONS = ("list", "resolve", "modify", "create")

# Convenience actions → (labels to add, labels to remove)
MESSAGE_ACTIONS: dict[str, tuple[list[str], list[str]]] = {
    "markRead": ([], ["UNREAD"]),
    "markUnread": (["UNREAD"], []),
    "star": (["STARRED"], []),
    "unstar": ([], ["STARRED"]),
    "archive": ([], ["INBOX"]),
    "unarchive": (["INBOX"], []),
    "important": (["IMPORTANT"], []),
    "notImportant": ([], ["IMPORTANT"]),
    "trash": (["TRASH"], []),
    "spam": (["SPAM"], ["INBOX"]),
}

SEND_FORMATS = [
    {"draftId": "r-1234567890"},
    {"to": "someone@example.com", "subject": "Hello", "body": "Message text"},
]

DRAFT_FORMAT = {
    "to": "someone@example.com",
    "subject": "Hello",
    "body": "Message text",
    "cc": "optional@example.com",
}


# =============================================================================
# PARSING
# =============================================================================

def _parse_message(params: Mapping[str, Any]) -> MessageDraft:
    """to/subject trimmed, body kept verbatim, optional fields only when non-blank."""
    missing = missing_fields(params, ("to", "subject", "body"))
    if missing:
        raise invalid_param(
            f"Missing required fields: {', '.join(missing)}",
            expected_format=DRAFT_FORMAT,
        )
    return MessageDraft(
        to=require_string(params, "to"),
        subject=require_string(params, "subject"),
        body=require_string(params, "body", trim=False),
        cc=optional_string(params, "cc"),
        bcc=optional_string(params, "bcc"),
        thread_id=optional_string(params, "threadId"),
    )


def _parse_read(params: Mapping[str, Any], max_ids: int) -> ReadParams:
    ids = string_list(params.get("ids"), "ids") or string_list(params.get("id"), "id")
    if len(ids) > max_ids:
        raise invalid_param(f"Too many ids: {len(ids)} (maximum {max_ids} per read)")
    fmt = optional_string(params, "format") or "full"
    if fmt not in READ_FORMATS:
        raise invalid_param(
            f"Invalid format: {fmt}. Use one of: {', '.join(sorted(READ_FORMATS))}"
        )
    return ReadParams(ids=ids, search_query=optional_string(params, "searchQuery"), format=fmt)


def _parse_send(params: Mapping[str, Any]) -> SendDraftParams | SendMessageParams:
    draft_id = optional_string(params, "draftId")
    has_message_fields = any(params.get(k) is not None for k in ("to", "subject", "body"))

    if draft_id and has_message_fields:
        raise invalid_param(
            "Provide either draftId or to + subject + body, not both",
            expected_format=SEND_FORMATS,
        )
    if draft_id:
        return SendDraftParams(draft_id=draft_id)

    missing = missing_fields(params, ("to", "subject", "body"))
    if missing:
        raise invalid_param(
            f"Missing required fields: {', '.join(missing)}. "
            "Send an existing draft with draftId, or a new message with to, subject and body.",
            expected_format=SEND_FORMATS,
        )
    return SendMessageParams(
        message=_parse_message(params),
        to_self=coerce_bool(params.get("toSelf")),
        confirm_self_send=coerce_bool(params.get("confirmSelfSend")),
    )


def _parse_modify(params: Mapping[str, Any]) -> ModifyParams:
    ids = string_list(params.get("ids"), "ids") or string_list(params.get("messageId"), "messageId")
    if not ids:
        raise invalid_param("Missing required field: ids", expected_format={
            "ids": ["18c2f..."], "actions": {"markRead": True, "archive": True},
        })

    add = string_list(params.get("add"), "add")
    remove = string_list(params.get("remove"), "remove")

    actions = params.get("actions")
    if isinstance(actions, dict):
        names = [name for name, enabled in actions.items() if coerce_bool(enabled)]
    else:
        names = string_list(actions, "actions")
    for name in names:
        if name not in MESSAGE_ACTIONS:
            raise invalid_param(
                f"Unknown action: {name}. Supported: {', '.join(sorted(MESSAGE_ACTIONS))}"
            )
        labels_add, labels_remove = MESSAGE_ACTIONS[name]
        add.extend(labels_add)
        remove.extend(labels_remove)

    if not add and not remove:
        raise invalid_param("Nothing to modify: provide actions, add or remove")
    return ModifyParams(ids=ids, add=add, remove=remove)


def _parse_attachment_preview(params: Mapping[str, Any]) -> AttachmentPreviewParams:
    missing = missing_fields(params, ("messageId", "attachmentId"))
    if missing:
        raise invalid_param(f"Missing required fields: {', '.join(missing)}")
    mode = optional_string(params, "mode") or "text"
    if mode not in PREVIEW_MODES:
        raise invalid_param(f"Invalid mode: {mode}. Use 'text' or 'table'")
    max_rows = optional_int(params, "maxRows") or PREVIEW_MAX_ROWS
    delimiter = params.get("delimiter") or "auto"
    if delimiter not in PREVIEW_DELIMITERS:
        raise invalid_param("Invalid delimiter. Use auto, ',', ';', '|' or a tab")
    return AttachmentPreviewParams(
        message_id=require_string(params, "messageId"),
        attachment_id=require_string(params, "attachmentId"),
        mode=mode,
        max_kb=max(1, optional_int(params, "maxKb") or PREVIEW_DEFAULT_KB),
        max_rows=max(1, min(max_rows, PREVIEW_MAX_ROWS)),
        delimiter=delimiter,
    )


def _parse_labels(params: Mapping[str, Any]) -> LabelsParams:
    present = [a for a in LABEL_ACTIONS if params.get(a) not in (None, False)]
    if len(present) != 1:
        raise invalid_param(
            "Specify exactly one of: list, resolve, modify, create",
            expected_format={
                "list": {"list": True},
                "resolve": {"resolve": ["Work", "Receipts"]},
                "modify": {"modify": {"messageId": "18c2f...", "add": ["Label_1"], "remove": []}},
                "create": {"create": {"name": "Follow-up"}},
            },
        )
    action = present[0]
    value = params[action]

    if action == "list":
        return LabelsParams(action="list")

    if action == "resolve":
        source = value.get("names") if isinstance(value, dict) else value
        names = string_list(source, "resolve")
        if not names:
            raise invalid_param("resolve needs at least one label name")
        return LabelsParams(action="resolve", names=names)

    if action == "modify":
        if not isinstance(value, dict):
            raise invalid_param("modify must be an object with messageId or ids")
        ids = string_list(value.get("messageId"), "modify.messageId") or string_list(
            value.get("ids"), "modify.ids"
        )
        if not ids:
            raise invalid_param("Missing required field: modify.messageId or modify.ids")
        add = string_list(value.get("add"), "modify.add")
        remove = string_list(value.get("remove"), "modify.remove")
        if not add and not remove:
            raise invalid_param("modify needs add or remove")
        return LabelsParams(action="modify", ids=ids, add=add, remove=remove)

    spec = {"name": value} if isinstance(value, str) else value
    if not isinstance(spec, dict) or not optional_string(spec, "name"):
        raise invalid_param("Missing required field: create.name")
    spec = {**spec, "name": spec["name"].strip()}
    return LabelsParams(action="create", create=spec)


def _recipients(message: MessageDraft) -> set[str]:
    fields = [message.to, message.cc or "", message.bcc or ""]
    return {addr.lower() for _, addr in getaddresses(fields) if addr}


def _is_self_send(send: SendMessageParams, identity: Identity) -> bool:
    if send.to_self:
        return True
    if identity.email:
        return identity.email.lower() in _recipients(send.message)
    return False


# =============================================================================
# HANDLERS
# =============================================================================

async def search(ctx: RpcContext, params: dict[str, Any]) -> dict[str, Any]:
    """One page of message ids, or a capped aggregate with a snapshot token."""
    raw_query = optional_string(params, "query") or optional_string(params, "q") or ""
    query = parse_page_query(params, {"query": sanitize_gmail_query(raw_query)})

    async def fetch(page: dict[str, Any]) -> dict[str, Any]:
        return await ctx.backends.mail.search_emails(ctx.identity, page)

    envelope = await ctx.engine.run(
        fetch,
        query,
        cap=ctx.limits.aggregate_cap_mail,
        caller=ctx.identity.key,
        items_key="messages",
    )
    return envelope.to_dict()


async def _read(ctx: RpcContext, params: dict[str, Any]) -> Any:
    read = _parse_read(params, ctx.limits.batch_read_max_ids)
    mail = ctx.backends.mail

    ids = read.ids
    if not ids and read.search_query:
        found = await mail.search_emails(ctx.identity, {
            "query": sanitize_gmail_query(read.search_query),
            "maxResults": SEARCH_FALLBACK_LIMIT,
        })
        ids = [m["id"] for m in found.get("messages") or []]
        return await gather_bounded(
            [lambda i=i: mail.read_email(ctx.identity, i, read.format) for i in ids],
            ctx.limits.batch_read_concurrency,
        )

    if len(ids) == 1:
        return await mail.read_email(ctx.identity, ids[0], read.format)
    if len(ids) > 1:
        return await gather_bounded(
            [lambda i=i: mail.read_email(ctx.identity, i, read.format) for i in ids],
            ctx.limits.batch_read_concurrency,
        )
    # Neither ids nor searchQuery: no result
    return None


async def _send(ctx: RpcContext, params: dict[str, Any]) -> Any:
    send = _parse_send(params)
    if isinstance(send, SendDraftParams):
        return await ctx.backends.mail.send_draft(ctx.identity, send.draft_id)

    if _is_self_send(send, ctx.identity) and not send.confirm_self_send:
        raise error_from_code(
            "CONFIRM_SELF_SEND_REQUIRED",
            "This message is addressed to you. Set confirmSelfSend: true to send it anyway.",
        )
    return await ctx.backends.mail.send_email(ctx.identity, send.message.to_payload())


async def _create_draft(ctx: RpcContext, params: dict[str, Any]) -> Any:
    message = _parse_message(params)
    return await ctx.backends.mail.create_draft(ctx.identity, message.to_payload())


async def _update_draft(ctx: RpcContext, params: dict[str, Any]) -> Any:
    update = UpdateDraftParams(
        draft_id=require_string(params, "draftId"),
        message=_parse_message(params),
    )
    return await ctx.backends.mail.update_draft(
        ctx.identity, update.draft_id, update.message.to_payload()
    )


async def _list_drafts(ctx: RpcContext, params: dict[str, Any]) -> Any:
    page: dict[str, Any] = {"maxResults": ctx.engine.page_size(optional_int(params, "maxResults"))}
    page_token = optional_string(params, "pageToken")
    if page_token:
        page["pageToken"] = page_token
    return await ctx.backends.mail.list_drafts(ctx.identity, page)


async def _get_draft(ctx: RpcContext, params: dict[str, Any]) -> Any:
    return await ctx.backends.mail.get_draft(ctx.identity, require_string(params, "draftId"))


async def _reply(ctx: RpcContext, params: dict[str, Any]) -> Any:
    reply = ReplyParams(
        message_id=require_string(params, "messageId"),
        body=require_string(params, "body", trim=False),
        reply_all=coerce_bool(params.get("replyAll")),
        cc=optional_string(params, "cc"),
    )
    payload: dict[str, Any] = {"body": reply.body, "replyAll": reply.reply_all}
    if reply.cc:
        payload["cc"] = reply.cc
    return await ctx.backends.mail.reply_to_email(ctx.identity, reply.message_id, payload)


async def _modify(ctx: RpcContext, params: dict[str, Any]) -> Any:
    modify = _parse_modify(params)
    mail = ctx.backends.mail
    return await gather_bounded(
        [
            lambda i=i: mail.modify_message_labels(ctx.identity, i, modify.add, modify.remove)
            for i in modify.ids
        ],
        ctx.limits.batch_read_concurrency,
    )


async def _attachment_preview(ctx: RpcContext, params: dict[str, Any]) -> Any:
    preview = _parse_attachment_preview(params)
    mail = ctx.backends.mail
    if preview.mode == "text":
        return await mail.preview_attachment_text(
            ctx.identity, preview.message_id, preview.attachment_id, preview.max_kb
        )
    return await mail.preview_attachment_table(
        ctx.identity,
        preview.message_id,
        preview.attachment_id,
        preview.max_rows,
        preview.delimiter,
    )


def resolve_label_names(names: list[str], labels: list[dict[str, Any]]) -> dict[str, Any]:
    """Match names to label ids case-insensitively (system ids match too)."""
    by_name = {label.get("name", "").lower(): label for label in labels}
    by_id = {label.get("id", "").lower(): label for label in labels}
    resolved = []
    unresolved = []
    for name in names:
        label = by_name.get(name.lower()) or by_id.get(name.lower())
        if label is None:
            unresolved.append(name)
        resolved.append({"name": name, "id": label.get("id") if label else None})
    return {"labels": resolved, "unresolved": unresolved}


async def _labels(ctx: RpcContext, params: dict[str, Any]) -> Any:
    labels = _parse_labels(params)
    mail = ctx.backends.mail

    if labels.action == "list":
        return await mail.list_labels(ctx.identity)

    if labels.action == "resolve":
        return resolve_label_names(labels.names, await mail.list_labels(ctx.identity))

    if labels.action == "modify":
        if len(labels.ids) == 1:
            return await mail.modify_message_labels(
                ctx.identity, labels.ids[0], labels.add, labels.remove
            )
        return await gather_bounded(
            [
                lambda i=i: mail.modify_message_labels(ctx.identity, i, labels.add, labels.remove)
                for i in labels.ids
            ],
            ctx.limits.batch_read_concurrency,
        )

    return await mail.create_label(ctx.identity, labels.create)


mail_rpc = Dispatcher(
    domain="mail",
    handlers={
        "search": search,
        "read": _read,
        "send": _send,
        "createDraft": _create_draft,
        "updateDraft": _update_draft,
        "listDrafts": _list_drafts,
        "getDraft": _get_draft,
        "reply": _reply,
        "modify": _modify,
        "attachmentPreview": _attachment_preview,
        "labels": _labels,
    },
    root_keys=MAIL_ROOT_KEYS,
)
