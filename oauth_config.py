"""
OAuth Configuration - Single Source of Truth

Scopes the delegated access token must carry, plus the spreadsheet
coordinates of the Sheets-backed contacts store. Do not duplicate elsewhere.

Token acquisition and refresh happen outside this service; callers
present a Google access token as a bearer credential.
"""

import os

# OAuth scopes the Custom GPT connector must request
SCOPES = [
    # --- Mail: search, read, drafts, send, labels ---
    'https://www.googleapis.com/auth/gmail.modify',
    'https://www.googleapis.com/auth/gmail.compose',
    'https://www.googleapis.com/auth/gmail.send',
    'https://www.googleapis.com/auth/gmail.labels',

    # --- Calendar: list, create, update, delete, conflict checks ---
    'https://www.googleapis.com/auth/calendar',

    # --- Tasks: list + dedicated mutation facades ---
    'https://www.googleapis.com/auth/tasks',

    # --- Contacts live in a spreadsheet the service creates (drive.file) ---
    'https://www.googleapis.com/auth/spreadsheets',
    'https://www.googleapis.com/auth/drive.file',
]

# Contacts spreadsheet: one sheet, header row + Name|Email|Notes|RealEstate|Phone
CONTACTS_SHEET_NAME = os.environ.get('CONCIERGE_CONTACTS_SHEET', 'MCP1 Contacts')
CONTACTS_HEADER = ['Name', 'Email', 'Notes', 'RealEstate', 'Phone']
CONTACTS_RANGE = 'A2:E'

SHEET_URL_TEMPLATE = 'https://docs.google.com/spreadsheets/d/{spreadsheet_id}/edit'


def sheet_url(spreadsheet_id: str | None) -> str | None:
    """Browser URL for a spreadsheet, or None without an id."""
    if not spreadsheet_id:
        return None
    return SHEET_URL_TEMPLATE.format(spreadsheet_id=spreadsheet_id)
