"""
Tests for validation utilities.
"""

import pytest

from models import ConciergeError
from validation import (
    coerce_bool,
    coerce_int,
    first_present,
    missing_fields,
    normalize_due_date,
    optional_string,
    require_string,
    sanitize_gmail_query,
    string_list,
)


class TestRequireString:

    def test_trims(self) -> None:
        assert require_string({"to": "  a@example.com "}, "to") == "a@example.com"

    def test_untrimmed_body_kept(self) -> None:
        assert require_string({"body": " hi \n"}, "body", trim=False) == " hi \n"

    def test_missing_raises(self) -> None:
        with pytest.raises(ConciergeError) as exc_info:
            require_string({}, "subject")
        assert exc_info.value.message == "Missing required field: subject"

    def test_blank_raises(self) -> None:
        with pytest.raises(ConciergeError):
            require_string({"subject": "   "}, "subject")

    def test_non_string_raises(self) -> None:
        with pytest.raises(ConciergeError):
            require_string({"subject": 5}, "subject")

    def test_optional_string_blank_is_none(self) -> None:
        assert optional_string({"cc": "  "}, "cc") is None
        assert optional_string({}, "cc") is None


class TestMissingFields:

    def test_reports_absent_and_blank(self) -> None:
        params = {"to": "a@example.com", "subject": " ", "body": None}
        assert missing_fields(params, ["to", "subject", "body"]) == ["subject", "body"]


class TestCoercion:

    def test_numeric_strings(self) -> None:
        assert coerce_int("5", "maxResults") == 5
        assert coerce_int(" 12 ", "maxResults") == 12
        assert coerce_int(7.0, "maxResults") == 7

    def test_rejects_non_numbers(self) -> None:
        for value in ("five", 1.5, True, None, [1]):
            with pytest.raises(ConciergeError):
                coerce_int(value, "maxResults")

    def test_bool_strings(self) -> None:
        assert coerce_bool("true")
        assert coerce_bool("1")
        assert not coerce_bool("false")
        assert coerce_bool(True)
        assert not coerce_bool(None)


class TestStringList:

    def test_bare_string_is_one_item(self) -> None:
        assert string_list("abc", "ids") == ["abc"]

    def test_trims_and_drops_blanks(self) -> None:
        assert string_list([" a ", "", "b"], "ids") == ["a", "b"]

    def test_none_is_empty(self) -> None:
        assert string_list(None, "ids") == []

    def test_rejects_objects(self) -> None:
        with pytest.raises(ConciergeError):
            string_list([{"id": "a"}], "ids")


class TestFirstPresent:

    def test_first_non_null_alias_wins(self) -> None:
        params = {"taskListId": None, "listId": "L1", "list_id": "L2"}
        assert first_present(params, ("taskListId", "listId", "list_id")) == "L1"

    def test_none_when_absent(self) -> None:
        assert first_present({}, ("a", "b")) is None


class TestNormalizeDueDate:

    def test_date_only(self) -> None:
        assert normalize_due_date("2025-01-31") == "2025-01-31T00:00:00.000Z"

    def test_local_datetime_gets_millis_and_zone(self) -> None:
        assert normalize_due_date("2025-01-31T09:30:00") == "2025-01-31T09:30:00.000Z"

    def test_zoned_value_unchanged(self) -> None:
        assert normalize_due_date("2025-01-31T09:30:00Z") == "2025-01-31T09:30:00Z"
        assert normalize_due_date("2025-01-31T09:30:00+02:00") == "2025-01-31T09:30:00+02:00"

    def test_blank_is_none(self) -> None:
        assert normalize_due_date("  ") is None
        assert normalize_due_date(None) is None


class TestSanitizeGmailQuery:

    def test_operators_preserved(self) -> None:
        assert sanitize_gmail_query("from:alice subject:meeting") == "from:alice subject:meeting"

    def test_control_characters_removed(self) -> None:
        assert sanitize_gmail_query("is:unread\x00\x07") == "is:unread"
