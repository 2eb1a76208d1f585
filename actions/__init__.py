"""
Dedicated mutation facades.

Contacts and tasks mutations are served here instead of the RPC
dispatchers: /api/contacts/actions/{modify,delete,bulkDelete} and
/api/tasks/actions/{create,modify,delete}.
"""

from typing import Mapping

from .base import Action, action_payload
from .contacts import CONTACT_ACTIONS
from .tasks import TASK_ACTIONS

ACTIONS: Mapping[str, Mapping[str, Action]] = {
    "contacts": CONTACT_ACTIONS,
    "tasks": TASK_ACTIONS,
}

__all__ = ["Action", "ACTIONS", "CONTACT_ACTIONS", "TASK_ACTIONS", "action_payload"]
