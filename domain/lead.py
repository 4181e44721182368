from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from domain.errors import InvalidStatusTransition

CONTACT_FIELDS = ("contact_name", "contact_email", "contact_phone")

SITUATION_FIELDS = (
    "situation_length",
    "payment_difficulty_date",
    "lender",
    "payment_status",
    "missed_payments",
    "nod",
    "property_type",
    "relief_contacted",
    "home_value",
    "mortgage_balance",
    "liens",
)

PROBLEM_FIELDS = (
    "challenge",
    "lender_issue",
    "impact",
    "options_narrowing",
    "third_party_help",
    "overwhelmed",
)

IMPLICATION_FIELDS = (
    "implication_credit",
    "implication_loss",
    "implication_stay_duration",
    "legal_concerns",
    "future_impact",
    "financial_risk",
)

NEED_PAYOFF_FIELDS = (
    "interested_solution",
    "negotiation_help",
    "sell_feelings",
    "credit_importance",
    "resolution_peace",
    "open_options",
)

QUESTIONNAIRE_FIELDS = (
    CONTACT_FIELDS + SITUATION_FIELDS + PROBLEM_FIELDS + IMPLICATION_FIELDS + NEED_PAYOFF_FIELDS
)

REQUIRED_FIELDS = ("situation_length", "payment_status", "nod")


class LeadStatus(str, Enum):
    SUBMITTED = "submitted"
    REVIEWED = "reviewed"
    CONTACTED = "contacted"
    CLOSED = "closed"

    @property
    def rank(self) -> int:
        return list(LeadStatus).index(self)

    def can_move_to(self, other: "LeadStatus") -> bool:
        return other.rank > self.rank


OPEN_STATUSES = (LeadStatus.SUBMITTED.value, LeadStatus.REVIEWED.value)


YES_VALUES = {"yes", "y", "true"}


def is_yes(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() in YES_VALUES


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse a store timestamp into an aware UTC datetime (naive values are UTC)."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class Lead:
    """A stored foreclosure questionnaire submission."""

    id: str
    created_at: datetime
    user_id: Optional[str] = None
    status: str = LeadStatus.SUBMITTED.value

    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    situation_length: Optional[str] = None
    payment_difficulty_date: Optional[str] = None
    lender: Optional[str] = None
    payment_status: Optional[str] = None
    missed_payments: int = 0
    nod: Optional[str] = None
    property_type: Optional[str] = None
    relief_contacted: Optional[str] = None
    home_value: Optional[str] = None
    mortgage_balance: Optional[str] = None
    liens: Optional[str] = None

    challenge: Optional[str] = None
    lender_issue: Optional[str] = None
    impact: Optional[str] = None
    options_narrowing: Optional[str] = None
    third_party_help: Optional[str] = None
    overwhelmed: Optional[str] = None

    implication_credit: Optional[str] = None
    implication_loss: Optional[str] = None
    implication_stay_duration: Optional[str] = None
    legal_concerns: Optional[str] = None
    future_impact: Optional[str] = None
    financial_risk: Optional[str] = None

    interested_solution: Optional[str] = None
    negotiation_help: Optional[str] = None
    sell_feelings: Optional[str] = None
    credit_importance: Optional[str] = None
    resolution_peace: Optional[str] = None
    open_options: Optional[str] = None

    notes: Optional[str] = None
    assigned_to: Optional[str] = None
    updated_at: Optional[datetime] = None

    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def nod_received(self) -> bool:
        return is_yes(self.nod)

    @property
    def is_overwhelmed(self) -> bool:
        return is_yes(self.overwhelmed)

    @property
    def first_name(self) -> str:
        parts = (self.contact_name or "").split()
        return parts[0] if parts else ""

    @property
    def last_name(self) -> str:
        return " ".join((self.contact_name or "").split()[1:])

    def days_since_created(self, now: datetime) -> int:
        return int((now - self.created_at).total_seconds() // 86400)

    def with_status(self, status: str, now: datetime) -> "Lead":
        """Return a copy moved to `status`; only forward moves are allowed."""
        try:
            requested = LeadStatus(status)
        except ValueError:
            raise InvalidStatusTransition(self.status, status) from None
        try:
            current = LeadStatus(self.status)
        except ValueError:
            # Unknown legacy values can only be repaired by closing the lead.
            if requested is not LeadStatus.CLOSED:
                raise InvalidStatusTransition(self.status, status)
            return replace(self, status=requested.value, updated_at=now)

        if not current.can_move_to(requested):
            raise InvalidStatusTransition(self.status, status)
        return replace(self, status=requested.value, updated_at=now)

    def answers(self) -> Dict[str, Any]:
        """Questionnaire fields as submitted."""
        return {name: getattr(self, name) for name in QUESTIONNAIRE_FIELDS}

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Lead":
        known = {f.name for f in fields(cls)} - {"extra", "created_at", "updated_at", "id", "missed_payments"}
        values = {name: row.get(name) for name in known if row.get(name) is not None}
        extra = {k: v for k, v in row.items() if k not in known and k not in ("id", "created_at", "updated_at", "missed_payments")}

        updated = row.get("updated_at")
        return cls(
            id=str(row["id"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(updated) if updated else None,
            missed_payments=coerce_missed_payments(row.get("missed_payments"), strict=False),
            extra=extra,
            **values,
        )


def coerce_missed_payments(value: Any, strict: bool = True) -> int:
    """Coerce the free-text missed-payments answer to an int (blank is 0)."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    text = str(value).strip()
    if not text:
        return 0
    try:
        return int(text)
    except ValueError:
        try:
            return int(float(text))
        except ValueError:
            if strict:
                raise
            return 0
