"""
Backend contracts: what the dispatchers need from Google.

Every method is async, takes the caller's Identity first, returns a
JSON-able value and raises ConciergeError on failure. The Google
implementations live in adapters/; tests substitute AsyncMocks.
"""

from dataclasses import dataclass
from typing import Any, Protocol

from models import BulkDeleteTarget, Contact, Identity


class MailBackend(Protocol):
    async def search_emails(self, identity: Identity, params: dict[str, Any]) -> dict[str, Any]: ...
    async def read_email(self, identity: Identity, message_id: str, fmt: str) -> dict[str, Any]: ...
    async def send_email(self, identity: Identity, payload: dict[str, Any]) -> dict[str, Any]: ...
    async def send_draft(self, identity: Identity, draft_id: str) -> dict[str, Any]: ...
    async def create_draft(self, identity: Identity, payload: dict[str, Any]) -> dict[str, Any]: ...
    async def update_draft(
        self, identity: Identity, draft_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]: ...
    async def list_drafts(self, identity: Identity, params: dict[str, Any]) -> dict[str, Any]: ...
    async def get_draft(self, identity: Identity, draft_id: str) -> dict[str, Any]: ...
    async def reply_to_email(
        self, identity: Identity, message_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]: ...
    async def modify_message_labels(
        self, identity: Identity, message_id: str, add: list[str], remove: list[str]
    ) -> dict[str, Any]: ...
    async def list_labels(self, identity: Identity) -> list[dict[str, Any]]: ...
    async def create_label(self, identity: Identity, spec: dict[str, Any]) -> dict[str, Any]: ...
    async def preview_attachment_text(
        self, identity: Identity, message_id: str, attachment_id: str, max_kb: int
    ) -> dict[str, Any]: ...
    async def preview_attachment_table(
        self,
        identity: Identity,
        message_id: str,
        attachment_id: str,
        max_rows: int,
        delimiter: str,
    ) -> dict[str, Any]: ...


class CalendarBackend(Protocol):
    async def list_events(self, identity: Identity, params: dict[str, Any]) -> dict[str, Any]: ...
    async def get_event(self, identity: Identity, event_id: str) -> dict[str, Any]: ...
    async def create_event(self, identity: Identity, event: dict[str, Any]) -> dict[str, Any]: ...
    async def update_event(
        self, identity: Identity, event_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]: ...
    async def delete_event(self, identity: Identity, event_id: str) -> dict[str, Any]: ...
    async def check_conflicts(
        self, identity: Identity, start: str, end: str, exclude_event_id: str | None = None
    ) -> list[dict[str, Any]]: ...


class ContactsBackend(Protocol):
    async def list_all_contacts(self, identity: Identity) -> dict[str, Any]: ...
    async def search_contacts(self, identity: Identity, query: str) -> dict[str, Any]: ...
    async def add_contact(self, identity: Identity, contact: Contact) -> dict[str, Any]: ...
    async def find_duplicates(self, identity: Identity) -> dict[str, Any]: ...
    async def bulk_upsert(self, identity: Identity, contacts: list[Contact]) -> dict[str, Any]: ...
    async def get_address_suggestions(self, identity: Identity, query: str) -> dict[str, Any]: ...
    async def update_contact(self, identity: Identity, contact: Contact) -> dict[str, Any]: ...
    async def delete_contact(
        self, identity: Identity, email: str | None, name: str | None
    ) -> dict[str, Any]: ...
    async def bulk_delete(self, identity: Identity, target: BulkDeleteTarget) -> dict[str, Any]: ...


class TasksBackend(Protocol):
    async def list_tasks(self, identity: Identity, params: dict[str, Any]) -> dict[str, Any]: ...
    async def create_task(self, identity: Identity, payload: dict[str, Any]) -> dict[str, Any]: ...
    async def update_task(
        self, identity: Identity, task_list_id: str, task_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]: ...
    async def delete_task(self, identity: Identity, task_list_id: str, task_id: str) -> None: ...


@dataclass
class Backends:
    """One implementation per domain, constructed once at startup."""
    mail: MailBackend
    calendar: CalendarBackend
    contacts: ContactsBackend
    tasks: TasksBackend
