from datetime import datetime, timedelta, timezone

import pytest

from domain.errors import InvalidStatusTransition
from domain.lead import Lead, coerce_missed_payments, is_yes, parse_timestamp

from fakes import NOW, make_lead


class TestLeadStatus:
    """Status only moves forward: submitted, reviewed, contacted, closed."""

    def test_forward_moves_allowed(self):
        lead = make_lead()
        reviewed = lead.with_status("reviewed", NOW)
        assert reviewed.status == "reviewed"
        assert reviewed.updated_at == NOW
        assert reviewed.with_status("closed", NOW).status == "closed"

    def test_identity_fields_unchanged(self):
        lead = make_lead()
        moved = lead.with_status("contacted", NOW)
        assert moved.id == lead.id
        assert moved.created_at == lead.created_at

    @pytest.mark.parametrize("current,requested", [
        ("reviewed", "submitted"),
        ("closed", "contacted"),
        ("contacted", "contacted"),
    ])
    def test_backward_or_repeated_moves_rejected(self, current, requested):
        with pytest.raises(InvalidStatusTransition):
            make_lead(status=current).with_status(requested, NOW)

    def test_unknown_requested_status_rejected(self):
        with pytest.raises(InvalidStatusTransition):
            make_lead().with_status("archived", NOW)

    def test_legacy_status_can_only_be_closed(self):
        lead = make_lead(status="pending")
        with pytest.raises(InvalidStatusTransition):
            lead.with_status("reviewed", NOW)
        assert lead.with_status("closed", NOW).status == "closed"


class TestLeadRow:
    def test_from_row(self):
        lead = Lead.from_row({
            "id": 42,
            "created_at": "2024-06-01T10:00:00Z",
            "updated_at": None,
            "status": "reviewed",
            "contact_name": "Jane Q Doe",
            "missed_payments": "3",
            "nod": "yes",
            "some_new_column": "kept",
        })

        assert lead.id == "42"
        assert lead.created_at == datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)
        assert lead.missed_payments == 3
        assert lead.nod_received is True
        assert lead.first_name == "Jane"
        assert lead.last_name == "Q Doe"
        assert lead.extra == {"some_new_column": "kept"}

    def test_from_row_tolerates_bad_count(self):
        lead = Lead.from_row({"id": "x", "created_at": "2024-06-01T10:00:00", "missed_payments": "n/a"})
        assert lead.missed_payments == 0
        assert lead.created_at.tzinfo is not None

    def test_days_since_created_uses_whole_days(self):
        lead = make_lead(created_at=NOW - timedelta(days=3, hours=23))
        assert lead.days_since_created(NOW) == 3


class TestHelpers:
    @pytest.mark.parametrize("value,expected", [
        (None, 0), ("", 0), ("2", 2), (" 7 ", 7), (3, 3), (2.0, 2), ("1.0", 1),
    ])
    def test_coerce_missed_payments(self, value, expected):
        assert coerce_missed_payments(value) == expected

    def test_coerce_missed_payments_strict(self):
        with pytest.raises(ValueError):
            coerce_missed_payments("several")
        assert coerce_missed_payments("several", strict=False) == 0

    @pytest.mark.parametrize("value,expected", [
        ("yes", True), ("YES", True), (" Yes ", True), ("no", False), (None, False), ("", False),
    ])
    def test_is_yes(self, value, expected):
        assert is_yes(value) is expected

    def test_parse_timestamp_converts_to_utc(self):
        parsed = parse_timestamp("2024-06-01T12:00:00+02:00")
        assert parsed == datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)
