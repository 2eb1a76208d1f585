"""
Tests for the mail RPC dispatcher.

Backends are AsyncMocks; assertions target the exact backend payloads
and the response envelope.
"""

import asyncio

import pytest

from backends import Backends
from models import ConciergeError, ErrorKind
from rpc.core import RpcContext
from rpc.mail import mail_rpc, resolve_label_names


class TestCreateDraft:

    @pytest.mark.asyncio
    async def test_trims_and_forwards_exact_payload(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.create_draft.return_value = {"draftId": "r-1", "message": {"id": "m1"}}

        response = await mail_rpc(
            {"op": "createDraft", "params": {"to": " a@example.com ", "subject": " Hi ", "body": "Line\n"}},
            ctx,
        )

        assert response.status == 200
        assert response.body == {"ok": True, "data": {"draftId": "r-1", "message": {"id": "m1"}}}
        backends.mail.create_draft.assert_awaited_once_with(
            ctx.identity, {"to": "a@example.com", "subject": "Hi", "body": "Line\n"}
        )

    @pytest.mark.asyncio
    async def test_root_level_fields(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.create_draft.return_value = {"draftId": "r-2"}
        await mail_rpc(
            {"op": "createDraft", "to": "a@example.com", "subject": "S", "body": "B", "cc": "  "}, ctx
        )
        backends.mail.create_draft.assert_awaited_once_with(
            ctx.identity, {"to": "a@example.com", "subject": "S", "body": "B"}
        )

    @pytest.mark.asyncio
    async def test_missing_subject(self, ctx: RpcContext, backends: Backends) -> None:
        response = await mail_rpc(
            {"op": "createDraft", "params": {"to": "a@example.com", "body": "x"}}, ctx
        )
        assert response.status == 400
        assert response.body["code"] == "INVALID_PARAM"
        assert "subject" in response.body["message"]
        assert "expectedFormat" in response.body
        backends.mail.create_draft.assert_not_awaited()


class TestRead:

    @pytest.mark.asyncio
    async def test_single_id(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.read_email.return_value = {"id": "m1"}
        response = await mail_rpc({"op": "read", "params": {"ids": ["m1"]}}, ctx)
        assert response.body["data"] == {"id": "m1"}
        backends.mail.read_email.assert_awaited_once_with(ctx.identity, "m1", "full")

    @pytest.mark.asyncio
    async def test_multiple_ids_keep_input_order(self, ctx: RpcContext, backends: Backends) -> None:
        delays = {"a": 0.03, "b": 0.0, "c": 0.01}

        async def read(identity, message_id, fmt):
            await asyncio.sleep(delays[message_id])
            return {"id": message_id}

        backends.mail.read_email.side_effect = read
        response = await mail_rpc({"op": "read", "ids": ["a", "b", "c"]}, ctx)
        assert [m["id"] for m in response.body["data"]] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_too_many_ids(self, ctx: RpcContext, backends: Backends) -> None:
        ids = [f"m{i}" for i in range(ctx.limits.batch_read_max_ids + 1)]
        response = await mail_rpc({"op": "read", "params": {"ids": ids}}, ctx)
        assert response.status == 400
        backends.mail.read_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_search_query_fallback(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.search_emails.return_value = {"messages": [{"id": "x"}, {"id": "y"}]}
        backends.mail.read_email.side_effect = lambda identity, i, fmt: {"id": i}
        response = await mail_rpc({"op": "read", "params": {"searchQuery": "from:bob"}}, ctx)
        assert response.body["data"] == [{"id": "x"}, {"id": "y"}]
        backends.mail.search_emails.assert_awaited_once_with(
            ctx.identity, {"query": "from:bob", "maxResults": 10}
        )

    @pytest.mark.asyncio
    async def test_no_ids_no_query_is_undefined(self, ctx: RpcContext) -> None:
        response = await mail_rpc({"op": "read"}, ctx)
        assert response.status == 500
        assert response.body["code"] == "UNDEFINED_RESULT"


class TestSend:

    @pytest.mark.asyncio
    async def test_send_draft(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.send_draft.return_value = {"id": "m9"}
        response = await mail_rpc({"op": "send", "draftId": "r-1"}, ctx)
        assert response.status == 200
        backends.mail.send_draft.assert_awaited_once_with(ctx.identity, "r-1")

    @pytest.mark.asyncio
    async def test_draft_and_message_fields_rejected(self, ctx: RpcContext, backends: Backends) -> None:
        response = await mail_rpc({"op": "send", "draftId": "r-1", "to": "a@example.com"}, ctx)
        assert response.status == 400
        assert isinstance(response.body["expectedFormat"], list)
        backends.mail.send_draft.assert_not_awaited()
        backends.mail.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_neither_rejected(self, ctx: RpcContext) -> None:
        response = await mail_rpc({"op": "send", "params": {}}, ctx)
        assert response.status == 400

    @pytest.mark.asyncio
    async def test_self_send_requires_confirmation(self, ctx: RpcContext, backends: Backends) -> None:
        response = await mail_rpc(
            {"op": "send", "to": "Me <ME@example.com>", "subject": "note", "body": "x"}, ctx
        )
        assert response.status == 400
        assert response.body["code"] == "CONFIRM_SELF_SEND_REQUIRED"
        backends.mail.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_self_send_confirmed(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.send_email.return_value = {"id": "m1"}
        response = await mail_rpc(
            {"op": "send", "to": "me@example.com", "subject": "note", "body": "x", "confirmSelfSend": True},
            ctx,
        )
        assert response.status == 200
        backends.mail.send_email.assert_awaited_once_with(
            ctx.identity, {"to": "me@example.com", "subject": "note", "body": "x"}
        )


class TestReplyAndModify:

    @pytest.mark.asyncio
    async def test_reply_payload(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.reply_to_email.return_value = {"id": "r"}
        await mail_rpc({"op": "reply", "messageId": "m1", "body": "Thanks", "replyAll": "true"}, ctx)
        backends.mail.reply_to_email.assert_awaited_once_with(
            ctx.identity, "m1", {"body": "Thanks", "replyAll": True}
        )

    @pytest.mark.asyncio
    async def test_modify_actions(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.modify_message_labels.return_value = {"id": "m1"}
        await mail_rpc(
            {"op": "modify", "ids": ["m1"], "actions": {"markRead": True, "archive": True, "star": False}},
            ctx,
        )
        backends.mail.modify_message_labels.assert_awaited_once_with(
            ctx.identity, "m1", [], ["UNREAD", "INBOX"]
        )

    @pytest.mark.asyncio
    async def test_modify_unknown_action(self, ctx: RpcContext) -> None:
        response = await mail_rpc({"op": "modify", "ids": ["m1"], "actions": ["explode"]}, ctx)
        assert response.status == 400


class TestLabels:

    @pytest.mark.asyncio
    async def test_exactly_one_action(self, ctx: RpcContext, backends: Backends) -> None:
        response = await mail_rpc({"op": "labels", "list": True, "create": {"name": "X"}}, ctx)
        assert response.status == 400
        response = await mail_rpc({"op": "labels", "params": {}}, ctx)
        assert response.status == 400
        backends.mail.list_labels.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_resolve(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.list_labels.return_value = [
            {"id": "Label_1", "name": "Work", "type": "user"},
            {"id": "INBOX", "name": "INBOX", "type": "system"},
        ]
        response = await mail_rpc({"op": "labels", "resolve": ["work", "inbox", "Nope"]}, ctx)
        assert response.body["data"] == {
            "labels": [
                {"name": "work", "id": "Label_1"},
                {"name": "inbox", "id": "INBOX"},
                {"name": "Nope", "id": None},
            ],
            "unresolved": ["Nope"],
        }

    @pytest.mark.asyncio
    async def test_create(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.create_label.return_value = {"id": "Label_9", "name": "Follow-up"}
        await mail_rpc({"op": "labels", "create": " Follow-up "}, ctx)
        backends.mail.create_label.assert_awaited_once_with(ctx.identity, {"name": "Follow-up"})

    def test_resolve_helper_matches_ids(self) -> None:
        result = resolve_label_names(["STARRED"], [{"id": "STARRED", "name": "STARRED"}])
        assert result["unresolved"] == []


class TestAttachmentPreview:

    @pytest.mark.asyncio
    async def test_text_mode_default(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.preview_attachment_text.return_value = {"mode": "text"}
        await mail_rpc({"op": "attachmentPreview", "messageId": "m1", "attachmentId": "a1"}, ctx)
        backends.mail.preview_attachment_text.assert_awaited_once_with(ctx.identity, "m1", "a1", 256)

    @pytest.mark.asyncio
    async def test_table_rows_clamped(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.preview_attachment_table.return_value = {"mode": "table"}
        await mail_rpc(
            {"op": "attachmentPreview", "messageId": "m1", "attachmentId": "a1", "mode": "table", "maxRows": 5000},
            ctx,
        )
        backends.mail.preview_attachment_table.assert_awaited_once_with(ctx.identity, "m1", "a1", 200, "auto")

    @pytest.mark.asyncio
    async def test_unknown_mode(self, ctx: RpcContext) -> None:
        response = await mail_rpc(
            {"op": "attachmentPreview", "messageId": "m1", "attachmentId": "a1", "mode": "pdf"}, ctx
        )
        assert response.status == 400


class TestSearchAndDispatch:

    @pytest.mark.asyncio
    async def test_search_single_page(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.search_emails.return_value = {"messages": [{"id": "m1"}], "nextPageToken": "t2"}
        response = await mail_rpc({"op": "search", "query": "is:unread", "maxResults": "10"}, ctx)
        assert response.body["data"] == {"items": [{"id": "m1"}], "hasMore": True, "nextPageToken": "t2"}
        backends.mail.search_emails.assert_awaited_once_with(
            ctx.identity, {"query": "is:unread", "maxResults": 10, "pageToken": None}
        )

    @pytest.mark.asyncio
    async def test_unknown_op(self, ctx: RpcContext) -> None:
        response = await mail_rpc({"op": "explode"}, ctx)
        assert response.status == 400
        assert "Unknown operation" in response.body["message"]

    @pytest.mark.asyncio
    async def test_upstream_failure_translated(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.get_draft.side_effect = ConciergeError(
            ErrorKind.AUTH_REQUIRED, "expired", code="GOOGLE_UNAUTHORIZED", requires_reauth=True
        )
        response = await mail_rpc({"op": "getDraft", "draftId": "r-1"}, ctx)
        assert response.status == 401
        assert response.body["requiresReauth"] is True

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_generic(self, ctx: RpcContext, backends: Backends) -> None:
        backends.mail.list_drafts.side_effect = RuntimeError("boom")
        response = await mail_rpc({"op": "listDrafts"}, ctx)
        assert response.status == 500
        assert response.body["code"] == "MAIL_RPC_FAILED"
        assert "boom" not in response.body["message"]
