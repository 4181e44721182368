from typing import Dict, Any
from graph.state import IntakeState
from domain.errors import InputError
from domain.lead import QUESTIONNAIRE_FIELDS, REQUIRED_FIELDS, coerce_missed_payments
from loguru import logger


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def normalize_answers(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Keep known questionnaire fields as submitted; only missed_payments is coerced."""
    answers = {name: raw.get(name) for name in QUESTIONNAIRE_FIELDS}

    try:
        answers["missed_payments"] = coerce_missed_payments(raw.get("missed_payments"))
    except ValueError:
        raise InputError(f"missed_payments must be a number, got {raw.get('missed_payments')!r}") from None

    if _blank(answers.get("payment_difficulty_date")):
        answers["payment_difficulty_date"] = None

    return answers


def capture(state: IntakeState) -> IntakeState:
    """Validate and normalize the incoming questionnaire payload."""
    raw = state.get("raw") or {}
    if not isinstance(raw, dict):
        raise InputError("Submission payload must be a JSON object")

    logger.info(f"Starting capture for submission from user {state.get('user_id', 'unknown')}")

    answers = normalize_answers(raw)

    missing_fields = [field for field in REQUIRED_FIELDS if _blank(answers.get(field))]
    if missing_fields:
        raise InputError(f"Missing required fields: {', '.join(missing_fields)}")

    state["answers"] = answers
    logger.info(f"Capture completed, {sum(1 for v in answers.values() if not _blank(v))} fields answered")
    return state
