"""Tests for shared utility functions."""

import logging
from datetime import date, time

from booking_engine.logging_context import (
    ConversationIdFilter,
    get_conversation_id,
    get_conversation_logger,
    set_conversation_id,
)
from booking_engine.utils import (
    format_date_label,
    format_time_label,
    normalize_phone,
    parse_hhmm,
    parse_iso_date,
    to_e164,
)


class TestNormalizePhone:
    def test_strips_spaces(self):
        assert normalize_phone("416 555 0199") == "4165550199"

    def test_strips_dashes(self):
        assert normalize_phone("416-555-0199") == "4165550199"

    def test_strips_parentheses(self):
        assert normalize_phone("(416) 555-0199") == "4165550199"

    def test_preserves_leading_plus(self):
        assert normalize_phone("+1 416 555 0199") == "+14165550199"

    def test_strips_whitespace(self):
        assert normalize_phone("  4165550199  ") == "4165550199"


class TestToE164:
    def test_prefixes_default_country_code(self):
        assert to_e164("416-555-0199", "1") == "+14165550199"

    def test_keeps_explicit_plus(self):
        assert to_e164("+44 20 7946 0958", "1") == "+442079460958"

    def test_trunk_prefixed_number_not_doubled(self):
        assert to_e164("1 (416) 555-0199", "1") == "+14165550199"

    def test_international_dialing_prefix(self):
        assert to_e164("0044 20 7946 0958", "1") == "+442079460958"


class TestParsers:
    def test_iso_date(self):
        assert parse_iso_date("2026-10-20") == date(2026, 10, 20)

    def test_iso_date_invalid_returns_none(self):
        assert parse_iso_date("2026-02-30") is None
        assert parse_iso_date("next week") is None
        assert parse_iso_date(None) is None

    def test_hhmm(self):
        assert parse_hhmm("14:30") == time(14, 30)

    def test_hhmm_invalid_returns_none(self):
        assert parse_hhmm("25:00") is None
        assert parse_hhmm("2pm") is None
        assert parse_hhmm("") is None


class TestLabels:
    def test_date_label(self):
        assert format_date_label(date(2026, 10, 20)) == "Tuesday, October 20"

    def test_afternoon_time_label(self):
        assert format_time_label(time(14, 0)) == "2:00 PM"

    def test_noon_and_midnight_labels(self):
        assert format_time_label(time(12, 5)) == "12:05 PM"
        assert format_time_label(time(0, 30)) == "12:30 AM"


class TestConversationLogging:
    def test_filter_stamps_conversation_id(self):
        set_conversation_id("CONV-test")
        assert get_conversation_id() == "CONV-test"

        logger = get_conversation_logger("tests.logging_context")
        assert sum(isinstance(f, ConversationIdFilter) for f in logger.filters) == 1
        get_conversation_logger("tests.logging_context")
        assert sum(isinstance(f, ConversationIdFilter) for f in logger.filters) == 1

        record = logging.LogRecord("tests", logging.INFO, __file__, 1, "msg", None, None)
        assert logger.filter(record)
        assert record.conversation_id == "CONV-test"
