"""
Google API service initialization.

Shared by all adapters. Builds service objects from the caller's
delegated access token (no token files: acquisition and refresh happen
upstream of this service).

All services use a 60-second timeout to prevent indefinite hangs
when Google APIs are slow or network connections stall.
"""

import asyncio
from typing import Any

import google_auth_httplib2
import httplib2

__all__ = [
    "build_service",
    "get_gmail_service",
    "get_calendar_service",
    "get_tasks_service",
    "get_sheets_service",
    "get_drive_service",
    "execute",
]

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build, Resource

from models import Identity

# Default timeout for all Google API calls (seconds)
# Prevents indefinite hangs when APIs are slow or connections stall
API_TIMEOUT = 60


def _get_authorized_http(creds: Credentials) -> google_auth_httplib2.AuthorizedHttp:
    """Create authorized HTTP client with timeout."""
    http = httplib2.Http(timeout=API_TIMEOUT)
    return google_auth_httplib2.AuthorizedHttp(creds, http=http)


def build_service(identity: Identity, api: str, version: str) -> Resource:
    """Build a service for one caller with its own HTTP connection.

    NOT cached; requests run on worker threads and shared httplib2
    connections corrupt under concurrency. Discovery documents are
    bundled with the client, so building is cheap.
    """
    creds = Credentials(token=identity.access_token)
    return build(
        api,
        version,
        http=_get_authorized_http(creds),
        cache_discovery=False,
    )


def get_gmail_service(identity: Identity) -> Resource:
    """Gmail API v1 for this caller."""
    return build_service(identity, "gmail", "v1")


def get_calendar_service(identity: Identity) -> Resource:
    """Google Calendar API v3 for this caller."""
    return build_service(identity, "calendar", "v3")


def get_tasks_service(identity: Identity) -> Resource:
    """Google Tasks API v1 for this caller."""
    return build_service(identity, "tasks", "v1")


def get_sheets_service(identity: Identity) -> Resource:
    """Google Sheets API v4 for this caller."""
    return build_service(identity, "sheets", "v4")


def get_drive_service(identity: Identity) -> Resource:
    """Google Drive API v3 for this caller."""
    return build_service(identity, "drive", "v3")


async def execute(request: Any) -> Any:
    """Run a prepared API request off the event loop."""
    return await asyncio.to_thread(request.execute)
