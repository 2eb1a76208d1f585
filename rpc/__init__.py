"""
RPC layer: one dispatcher per domain.

Each dispatcher takes a raw JSON body plus an RpcContext and returns an
RpcResponse; it never raises.
"""

from types import MappingProxyType
from typing import Mapping

from .core import Dispatcher, RpcContext
from .mail import mail_rpc
from .calendar import calendar_rpc
from .contacts import contacts_rpc
from .tasks import tasks_rpc

DISPATCHERS: Mapping[str, Dispatcher] = MappingProxyType({
    d.domain: d for d in (mail_rpc, calendar_rpc, contacts_rpc, tasks_rpc)
})

# Domain -> every op name it recognizes (disabled ones included)
OPERATIONS: Mapping[str, frozenset[str]] = MappingProxyType({
    domain: d.operations for domain, d in DISPATCHERS.items()
})

__all__ = [
    "Dispatcher", "RpcContext", "DISPATCHERS", "OPERATIONS",
    "mail_rpc", "calendar_rpc", "contacts_rpc", "tasks_rpc",
]
