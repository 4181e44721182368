from enum import Enum
from typing import Any, Mapping, Union

from domain.lead import Lead, coerce_missed_payments, is_yes

HIGH_MISSED_PAYMENTS = 3


class Urgency(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def classify_urgency(lead: Union[Lead, Mapping[str, Any], None]) -> Urgency:
    """
    Derive the triage level of a lead.

    high: notice of default received, 3+ missed payments, or the client says
    they are overwhelmed. medium: at least one missed payment. low otherwise.
    Never raises; absent or malformed inputs count as "no".
    """
    if lead is None:
        return Urgency.LOW

    if isinstance(lead, Lead):
        nod, overwhelmed, missed = lead.nod, lead.overwhelmed, lead.missed_payments
    else:
        nod = lead.get("nod")
        overwhelmed = lead.get("overwhelmed")
        missed = coerce_missed_payments(lead.get("missed_payments"), strict=False)

    if is_yes(nod) or missed >= HIGH_MISSED_PAYMENTS or is_yes(overwhelmed):
        return Urgency.HIGH
    if missed >= 1:
        return Urgency.MEDIUM
    return Urgency.LOW
