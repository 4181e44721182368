"""
Read-only aggregations over the telephony tables.

Every aggregation tolerates empty tables and missing columns: rates and
averages over nothing are 0.
"""

from collections import Counter
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from domain.errors import InputError
from domain.lead import parse_timestamp, utc_now

ACTIONS = ("dashboard", "call-details", "intent-analysis", "agent-performance")

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.6
LOW_CONFIDENCE_THRESHOLD = 0.7


def _pct(part: float, whole: float) -> int:
    return round(part / whole * 100) if whole else 0


def _confidence(row: Mapping[str, Any]) -> float:
    try:
        return float(row.get("confidence_score") or 0)
    except (TypeError, ValueError):
        return 0.0


def _day(value: Any) -> Optional[str]:
    if not value:
        return None
    return parse_timestamp(value).date().isoformat()


def resolution_minutes(handoff: Mapping[str, Any]) -> Optional[float]:
    """Minutes from handoff to resolution, or None while unresolved."""
    if not handoff.get("resolution_time") or not handoff.get("handoff_time"):
        return None
    delta = parse_timestamp(handoff["resolution_time"]) - parse_timestamp(handoff["handoff_time"])
    return delta.total_seconds() / 60


def top_counts(values: List[Any], limit: Optional[int] = None) -> List[List[Any]]:
    """[[value, count], ...] most common first."""
    return [[value, count] for value, count in Counter(values).most_common(limit)]


class CallAnalytics:
    def __init__(self, calls, clock: Callable[[], datetime] = utc_now):
        self.calls = calls
        self.clock = clock

    def run(self, action: str = "dashboard", call_id: Optional[str] = None) -> Dict[str, Any]:
        if action == "dashboard":
            return self.dashboard()
        if action == "call-details":
            if not call_id:
                raise InputError("Call ID required")
            return self.call_details(call_id)
        if action == "intent-analysis":
            return self.intent_analysis()
        if action == "agent-performance":
            return self.agent_performance()
        raise InputError("Invalid action")

    def dashboard(self) -> Dict[str, Any]:
        calls = self.calls.list_calls()
        intents = self.calls.list_intents()
        handoffs = self.calls.list_handoffs()

        total_calls = len(calls)
        transferred = sum(1 for c in calls if c.get("call_status") == "transferred")
        today = self.clock().date().isoformat()
        total_duration = sum(c.get("call_duration") or 0 for c in calls)

        fulfilled = sum(1 for i in intents if i.get("fulfilled"))
        resolved = [m for m in (resolution_minutes(h) for h in handoffs) if m is not None]

        return {
            "overview": {
                "totalCalls": total_calls,
                "completedCalls": sum(1 for c in calls if c.get("call_status") == "completed"),
                "transferredCalls": transferred,
                "todayCalls": sum(1 for c in calls if _day(c.get("created_at")) == today),
                "urgentCalls": sum(1 for c in calls if c.get("priority_level") == "urgent"),
                "highPriorityCalls": sum(1 for c in calls if c.get("priority_level") == "high"),
                "avgDuration": round(total_duration / total_calls) if total_calls else 0,
                "transferRate": _pct(transferred, total_calls),
            },
            "aiPerformance": {
                "fulfillmentRate": _pct(fulfilled, len(intents)),
                "topIntents": top_counts([i.get("intent_name") for i in intents], 5),
                "avgConfidence": sum(_confidence(i) for i in intents) / len(intents) if intents else 0,
            },
            "handoffAnalysis": {
                "totalHandoffs": len(handoffs),
                "avgResolutionTime": round(sum(resolved) / len(resolved)) if resolved else 0,
                "commonReasons": top_counts([h.get("reason") for h in handoffs], 5),
            },
            "recentCalls": calls[:10],
        }

    def call_details(self, call_id: str) -> Dict[str, Any]:
        return {
            "call": self.calls.get_call(call_id),
            "transcript": self.calls.transcript_for(call_id),
            "intents": self.calls.intents_for(call_id),
            "handoff": self.calls.handoff_for(call_id),
        }

    def intent_analysis(self) -> Dict[str, Any]:
        intents = self.calls.list_intents()
        total = len(intents)
        scores = [_confidence(i) for i in intents]

        distribution = [
            {"intent": name, "count": count, "percentage": _pct(count, total)}
            for name, count in Counter(i.get("intent_name") for i in intents).items()
        ]

        daily: Dict[str, Dict[str, int]] = {}
        for intent in intents:
            day = _day(intent.get("created_at"))
            if day is None:
                continue
            stats = daily.setdefault(day, {"total": 0, "fulfilled": 0})
            stats["total"] += 1
            if intent.get("fulfilled"):
                stats["fulfilled"] += 1

        return {
            "intentDistribution": distribution,
            "confidenceAnalysis": {
                "ranges": {
                    "high": sum(1 for s in scores if s >= HIGH_CONFIDENCE),
                    "medium": sum(1 for s in scores if MEDIUM_CONFIDENCE <= s < HIGH_CONFIDENCE),
                    "low": sum(1 for s in scores if s < MEDIUM_CONFIDENCE),
                },
                "average": sum(scores) / total if total else 0,
            },
            "fulfillmentTrends": [
                {"date": day, "fulfillmentRate": _pct(s["fulfilled"], s["total"]), "totalIntents": s["total"]}
                for day, s in sorted(daily.items())
            ],
            "lowConfidenceIntents": [i for i in intents if _confidence(i) < LOW_CONFIDENCE_THRESHOLD],
        }

    def agent_performance(self) -> Dict[str, Any]:
        handoffs = self.calls.list_handoffs()

        agents: Dict[Any, Dict[str, Any]] = {}
        for handoff in handoffs:
            stats = agents.setdefault(handoff.get("agent_id"), {
                "agentId": handoff.get("agent_id"),
                "handoffs": 0,
                "resolvedCases": 0,
                "totalResolutionTime": 0.0,
            })
            stats["handoffs"] += 1
            minutes = resolution_minutes(handoff)
            if minutes is not None:
                stats["resolvedCases"] += 1
                stats["totalResolutionTime"] += minutes

        agent_stats = []
        for stats in agents.values():
            resolved = stats["resolvedCases"]
            agent_stats.append({
                **stats,
                "avgResolutionTime": round(stats["totalResolutionTime"] / resolved) if resolved else 0,
                "resolutionRate": _pct(resolved, stats["handoffs"]),
            })

        resolution_times = []
        for handoff in handoffs:
            minutes = resolution_minutes(handoff)
            if minutes is not None:
                resolution_times.append({
                    "handoffId": handoff.get("id"),
                    "resolutionTimeMinutes": round(minutes),
                    "reason": handoff.get("reason"),
                })

        return {
            "agentStats": agent_stats,
            "resolutionTimes": resolution_times,
            "handoffReasons": [
                {"reason": reason, "count": count}
                for reason, count in top_counts([h.get("reason") for h in handoffs])
            ],
        }
