from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from loguru import logger

from domain.errors import InputError
from domain.lead import parse_timestamp, utc_now

TIERS = ("free", "pro", "enterprise")
TIMEFRAMES = {
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "all": None,
}


def summarize_usage(rows: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Totals, averages, favourites and characters per UTC day for a set of usage rows."""
    rows = list(rows)
    total_characters = sum(int(r.get("text_length") or 0) for r in rows)
    total_requests = len(rows)

    voices = Counter(r.get("voice") for r in rows if r.get("voice"))
    models = Counter(r.get("model") for r in rows if r.get("model"))

    usage_by_day: Dict[str, int] = {}
    for r in rows:
        if not r.get("created_at"):
            continue
        day = parse_timestamp(r["created_at"]).date().isoformat()
        usage_by_day[day] = usage_by_day.get(day, 0) + int(r.get("text_length") or 0)

    return {
        "totalCharacters": total_characters,
        "totalRequests": total_requests,
        "averageLength": round(total_characters / total_requests) if total_requests else 0,
        "mostUsedVoice": voices.most_common(1)[0][0] if voices else "",
        "mostUsedModel": models.most_common(1)[0][0] if models else "",
        "usageByDay": dict(sorted(usage_by_day.items())),
    }


class VoiceUsageService:
    def __init__(self, repository, clock: Callable[[], datetime] = utc_now):
        self.repository = repository
        self.clock = clock

    def log(self, user_id: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        text = payload.get("text")
        voice = payload.get("voice")
        model = payload.get("model")
        tier = payload.get("tier")

        if not text or not voice or not model or not tier:
            raise InputError("Missing required fields")
        if not isinstance(text, str):
            raise InputError("text must be a string")
        if tier not in TIERS:
            raise InputError(f"tier must be one of: {', '.join(TIERS)}")

        row = self.repository.insert({
            "user_id": user_id,
            "text_length": len(text),
            "voice": voice,
            "model": model,
            "tier": tier,
        })
        logger.info(f"Logged {len(text)} characters of {voice}/{model} usage for {user_id}")
        return row

    def summary(self, user_id: str, timeframe: str = "week", now: Optional[datetime] = None) -> Dict[str, Any]:
        if timeframe not in TIMEFRAMES:
            raise InputError(f"timeframe must be one of: {', '.join(TIMEFRAMES)}")

        window = TIMEFRAMES[timeframe]
        since = (now or self.clock()) - window if window else None
        rows = self.repository.list_for_user(user_id, since=since)

        result = summarize_usage(rows)
        result["timeframe"] = timeframe
        return result
