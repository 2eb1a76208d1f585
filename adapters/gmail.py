"""
Gmail adapter: Gmail API wrapper.

Search, read, send, drafts, replies, labels and attachment previews.
Messages come back as plain dicts shaped for the RPC response.
"""

import base64
import csv
import io
from email.mime.text import MIMEText
from email.utils import getaddresses
from typing import Any

from adapters.services import execute, get_gmail_service
from logging_config import log_api_call, log_api_result
from models import Identity
from retry import with_retry


# Headers surfaced on every parsed message
WANTED_HEADERS = frozenset({"From", "To", "Cc", "Subject", "Date", "Reply-To", "Message-ID"})

# Headers needed to thread a reply
REPLY_HEADERS = ["From", "Reply-To", "To", "Cc", "Subject", "Message-ID", "References"]

SEARCH_METADATA_HEADERS = ["From", "To", "Subject", "Date"]

TABLE_DELIMITERS = ",;\t|"


def _parse_headers(headers: list[dict[str, str]]) -> dict[str, str]:
    """Extract wanted headers into a dict."""
    return {
        h["name"]: h["value"]
        for h in headers
        if h.get("name") in WANTED_HEADERS
    }


def _decode(data: str | None) -> bytes:
    if not data:
        return b""
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def _extract_body_by_mime_type(payload: dict[str, Any], mime_type: str) -> str | None:
    """
    Extract body content by MIME type from message payload.

    Handles both simple and multipart messages recursively.
    """
    if payload.get("mimeType") == mime_type:
        body_data = payload.get("body", {}).get("data")
        if body_data:
            return _decode(body_data).decode("utf-8", errors="ignore")

    for part in payload.get("parts", []):
        result = _extract_body_by_mime_type(part, mime_type)
        if result:
            return result

    return None


def _parse_attachments(payload: dict[str, Any]) -> list[dict[str, Any]]:
    """Attachment metadata (filename, mimeType, size, attachmentId) from all parts."""
    attachments: list[dict[str, Any]] = []
    for part in payload.get("parts", []):
        body = part.get("body", {})
        if part.get("filename") and body.get("attachmentId"):
            attachments.append({
                "filename": part["filename"],
                "mimeType": part.get("mimeType", "application/octet-stream"),
                "size": body.get("size", 0),
                "attachmentId": body["attachmentId"],
            })
        attachments.extend(_parse_attachments(part))
    return attachments


def _parse_message(msg: dict[str, Any]) -> dict[str, Any]:
    """Shape a messages.get response (any format) for callers."""
    payload = msg.get("payload", {})
    headers = _parse_headers(payload.get("headers", []))
    parsed: dict[str, Any] = {
        "id": msg.get("id"),
        "threadId": msg.get("threadId"),
        "labelIds": msg.get("labelIds", []),
        "snippet": msg.get("snippet", ""),
        "from": headers.get("From"),
        "to": headers.get("To"),
        "cc": headers.get("Cc"),
        "subject": headers.get("Subject", ""),
        "date": headers.get("Date"),
    }
    if payload.get("body") or payload.get("parts"):
        parsed["body"] = _extract_body_by_mime_type(payload, "text/plain")
        parsed["bodyHtml"] = _extract_body_by_mime_type(payload, "text/html")
        parsed["attachments"] = _parse_attachments(payload)
    return parsed


def build_raw_message(
    to: str,
    subject: str,
    body: str,
    cc: str | None = None,
    bcc: str | None = None,
    in_reply_to: str | None = None,
    references: str | None = None,
) -> str:
    """Build an RFC 2822 message and return it base64url encoded."""
    message = MIMEText(body, "plain", "utf-8")
    message["To"] = to
    message["Subject"] = subject
    if cc:
        message["Cc"] = cc
    if bcc:
        message["Bcc"] = bcc
    if in_reply_to:
        message["In-Reply-To"] = in_reply_to
    if references:
        message["References"] = references
    return base64.urlsafe_b64encode(message.as_bytes()).decode()


def _message_body(payload: dict[str, Any]) -> dict[str, Any]:
    """Gmail `message` resource for a send/draft payload."""
    message: dict[str, Any] = {
        "raw": build_raw_message(
            payload["to"],
            payload["subject"],
            payload["body"],
            cc=payload.get("cc"),
            bcc=payload.get("bcc"),
        )
    }
    if payload.get("threadId"):
        message["threadId"] = payload["threadId"]
    return message


def _reply_subject(subject: str) -> str:
    return subject if subject.lower().startswith("re:") else f"Re: {subject}"


def _addresses(*values: str | None) -> list[str]:
    return [addr for _, addr in getaddresses([v for v in values if v]) if addr]


def preview_text(data: bytes, max_kb: int) -> dict[str, Any]:
    """First `max_kb` KiB of an attachment decoded as UTF-8."""
    limit = max_kb * 1024
    return {
        "mode": "text",
        "text": data[:limit].decode("utf-8", errors="replace"),
        "truncated": len(data) > limit,
        "bytes": len(data),
    }


def preview_table(data: bytes, max_rows: int, delimiter: str) -> dict[str, Any]:
    """
    Parse a delimited attachment into header + rows.

    delimiter "auto" sniffs among comma, semicolon, tab and pipe,
    falling back to comma.
    """
    text = data.decode("utf-8-sig", errors="replace")
    if delimiter == "auto":
        try:
            delimiter = csv.Sniffer().sniff(text[:4096], delimiters=TABLE_DELIMITERS).delimiter
        except csv.Error:
            delimiter = ","

    rows: list[list[str]] = []
    truncated = False
    for row in csv.reader(io.StringIO(text), delimiter=delimiter):
        if len(rows) > max_rows:
            truncated = True
            break
        rows.append(row)

    headers = rows[0] if rows else []
    body = rows[1:max_rows + 1]
    return {
        "mode": "table",
        "delimiter": delimiter,
        "headers": headers,
        "rows": body,
        "rowCount": len(body),
        "truncated": truncated,
    }


class GmailBackend:
    """Mail backend on the Gmail API (userId "me")."""

    @with_retry(max_attempts=3, delay_ms=1000)
    async def search_emails(self, identity: Identity, params: dict[str, Any]) -> dict[str, Any]:
        """
        One page of matching messages with From/To/Subject/Date.

        Uses messages().list() for ids, then a batch of format="metadata"
        gets. Messages that fail in the batch are skipped.
        """
        service = get_gmail_service(identity)
        kwargs: dict[str, Any] = {"userId": "me", "maxResults": params.get("maxResults", 100)}
        if params.get("query"):
            kwargs["q"] = params["query"]
        if params.get("pageToken"):
            kwargs["pageToken"] = params["pageToken"]
        log_api_call("gmail", "messages.list", q=kwargs.get("q"), maxResults=kwargs["maxResults"])

        response = await execute(service.users().messages().list(**kwargs))
        refs = response.get("messages", [])

        found: dict[str, dict[str, Any]] = {}
        if refs:
            def handle(request_id: str, msg: dict[str, Any], exception: Exception | None) -> None:
                if exception is None:
                    found[msg["id"]] = _parse_message(msg)

            batch = service.new_batch_http_request()
            for ref in refs:
                batch.add(
                    service.users().messages().get(
                        userId="me",
                        id=ref["id"],
                        format="metadata",
                        metadataHeaders=SEARCH_METADATA_HEADERS,
                    ),
                    callback=handle,
                )
            await execute(batch)

        messages = [found.get(ref["id"], {"id": ref["id"], "threadId": ref.get("threadId")})
                    for ref in refs]
        log_api_result("gmail", "messages.list", len(messages))
        return {
            "messages": messages,
            "nextPageToken": response.get("nextPageToken"),
            "resultSizeEstimate": response.get("resultSizeEstimate", len(messages)),
        }

    @with_retry(max_attempts=3, delay_ms=1000)
    async def read_email(self, identity: Identity, message_id: str, fmt: str) -> dict[str, Any]:
        service = get_gmail_service(identity)
        log_api_call("gmail", "messages.get", id=message_id, format=fmt)
        msg = await execute(
            service.users().messages().get(userId="me", id=message_id, format=fmt)
        )
        return _parse_message(msg)

    @with_retry(max_attempts=3, delay_ms=1000)
    async def send_email(self, identity: Identity, payload: dict[str, Any]) -> dict[str, Any]:
        service = get_gmail_service(identity)
        log_api_call("gmail", "messages.send", to=payload["to"])
        sent = await execute(
            service.users().messages().send(userId="me", body=_message_body(payload))
        )
        return {"id": sent.get("id"), "threadId": sent.get("threadId"),
                "labelIds": sent.get("labelIds", [])}

    @with_retry(max_attempts=3, delay_ms=1000)
    async def send_draft(self, identity: Identity, draft_id: str) -> dict[str, Any]:
        service = get_gmail_service(identity)
        log_api_call("gmail", "drafts.send", id=draft_id)
        sent = await execute(service.users().drafts().send(userId="me", body={"id": draft_id}))
        return {"id": sent.get("id"), "threadId": sent.get("threadId"),
                "labelIds": sent.get("labelIds", [])}

    @with_retry(max_attempts=3, delay_ms=1000)
    async def create_draft(self, identity: Identity, payload: dict[str, Any]) -> dict[str, Any]:
        service = get_gmail_service(identity)
        log_api_call("gmail", "drafts.create", to=payload["to"])
        draft = await execute(
            service.users().drafts().create(userId="me", body={"message": _message_body(payload)})
        )
        return {"draftId": draft.get("id"), "message": draft.get("message", {})}

    @with_retry(max_attempts=3, delay_ms=1000)
    async def update_draft(
        self, identity: Identity, draft_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        service = get_gmail_service(identity)
        log_api_call("gmail", "drafts.update", id=draft_id)
        draft = await execute(
            service.users().drafts().update(
                userId="me",
                id=draft_id,
                body={"id": draft_id, "message": _message_body(payload)},
            )
        )
        return {"draftId": draft.get("id"), "message": draft.get("message", {})}

    @with_retry(max_attempts=3, delay_ms=1000)
    async def list_drafts(self, identity: Identity, params: dict[str, Any]) -> dict[str, Any]:
        service = get_gmail_service(identity)
        log_api_call("gmail", "drafts.list", **params)
        response = await execute(service.users().drafts().list(userId="me", **params))
        drafts = response.get("drafts", [])
        log_api_result("gmail", "drafts.list", len(drafts))
        return {"drafts": drafts, "nextPageToken": response.get("nextPageToken")}

    @with_retry(max_attempts=3, delay_ms=1000)
    async def get_draft(self, identity: Identity, draft_id: str) -> dict[str, Any]:
        service = get_gmail_service(identity)
        log_api_call("gmail", "drafts.get", id=draft_id)
        draft = await execute(
            service.users().drafts().get(userId="me", id=draft_id, format="full")
        )
        return {"draftId": draft.get("id"), "message": _parse_message(draft.get("message", {}))}

    @with_retry(max_attempts=3, delay_ms=1000)
    async def reply_to_email(
        self, identity: Identity, message_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Reply in-thread to a message.

        Replies go to Reply-To (else From). replyAll copies the original
        To and Cc, minus the caller's own address when known.
        """
        service = get_gmail_service(identity)
        log_api_call("gmail", "messages.reply", id=message_id, replyAll=payload.get("replyAll"))
        original = await execute(
            service.users().messages().get(
                userId="me", id=message_id, format="metadata", metadataHeaders=REPLY_HEADERS
            )
        )
        headers = {
            h["name"].lower(): h["value"]
            for h in original.get("payload", {}).get("headers", [])
        }

        to = headers.get("reply-to") or headers.get("from", "")
        cc = _addresses(payload.get("cc"))
        if payload.get("replyAll"):
            own = (identity.email or "").lower()
            primary = {a.lower() for a in _addresses(to)}
            cc = [
                addr for addr in _addresses(headers.get("to"), headers.get("cc"), payload.get("cc"))
                if addr.lower() != own and addr.lower() not in primary
            ]

        message_id_header = headers.get("message-id")
        references = " ".join(
            part for part in (headers.get("references"), message_id_header) if part
        )
        raw = build_raw_message(
            to,
            _reply_subject(headers.get("subject", "")),
            payload["body"],
            cc=", ".join(dict.fromkeys(cc)) or None,
            in_reply_to=message_id_header,
            references=references or None,
        )
        sent = await execute(
            service.users().messages().send(
                userId="me", body={"raw": raw, "threadId": original.get("threadId")}
            )
        )
        return {"id": sent.get("id"), "threadId": sent.get("threadId"),
                "labelIds": sent.get("labelIds", [])}

    @with_retry(max_attempts=3, delay_ms=1000)
    async def modify_message_labels(
        self, identity: Identity, message_id: str, add: list[str], remove: list[str]
    ) -> dict[str, Any]:
        service = get_gmail_service(identity)
        log_api_call("gmail", "messages.modify", id=message_id, add=add, remove=remove)
        msg = await execute(
            service.users().messages().modify(
                userId="me",
                id=message_id,
                body={"addLabelIds": add, "removeLabelIds": remove},
            )
        )
        return {"id": msg.get("id", message_id), "labelIds": msg.get("labelIds", [])}

    @with_retry(max_attempts=3, delay_ms=1000)
    async def list_labels(self, identity: Identity) -> list[dict[str, Any]]:
        service = get_gmail_service(identity)
        log_api_call("gmail", "labels.list")
        response = await execute(service.users().labels().list(userId="me"))
        labels = [
            {"id": label.get("id"), "name": label.get("name"), "type": label.get("type")}
            for label in response.get("labels", [])
        ]
        log_api_result("gmail", "labels.list", len(labels))
        return labels

    @with_retry(max_attempts=3, delay_ms=1000)
    async def create_label(self, identity: Identity, spec: dict[str, Any]) -> dict[str, Any]:
        service = get_gmail_service(identity)
        log_api_call("gmail", "labels.create", name=spec.get("name"))
        body = {"labelListVisibility": "labelShow", "messageListVisibility": "show", **spec}
        label = await execute(service.users().labels().create(userId="me", body=body))
        return {"id": label.get("id"), "name": label.get("name"), "type": label.get("type")}

    async def _attachment_bytes(
        self, identity: Identity, message_id: str, attachment_id: str
    ) -> bytes:
        service = get_gmail_service(identity)
        log_api_call("gmail", "attachments.get", messageId=message_id, id=attachment_id)
        response = await execute(
            service.users().messages().attachments().get(
                userId="me", messageId=message_id, id=attachment_id
            )
        )
        return _decode(response.get("data"))

    @with_retry(max_attempts=3, delay_ms=1000)
    async def preview_attachment_text(
        self, identity: Identity, message_id: str, attachment_id: str, max_kb: int
    ) -> dict[str, Any]:
        data = await self._attachment_bytes(identity, message_id, attachment_id)
        return {"messageId": message_id, "attachmentId": attachment_id,
                **preview_text(data, max_kb)}

    @with_retry(max_attempts=3, delay_ms=1000)
    async def preview_attachment_table(
        self,
        identity: Identity,
        message_id: str,
        attachment_id: str,
        max_rows: int,
        delimiter: str,
    ) -> dict[str, Any]:
        data = await self._attachment_bytes(identity, message_id, attachment_id)
        return {"messageId": message_id, "attachmentId": attachment_id,
                **preview_table(data, max_rows, delimiter)}
