from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from loguru import logger

from domain.lead import OPEN_STATUSES, Lead, utc_now

FOLLOW_UP_DAYS = (1, 3, 7, 14)


@dataclass
class Reminder:
    lead_id: str
    days_since: int
    sent: bool
    error: Optional[str] = None


def select_due_leads(leads: Iterable[Lead], now: datetime,
                     days: Iterable[int] = FOLLOW_UP_DAYS) -> List[Tuple[Lead, int]]:
    """Open leads whose whole-day age equals one of the follow-up offsets."""
    offsets = set(days)
    due = []
    for lead in leads:
        if lead.status not in OPEN_STATUSES:
            continue
        age = lead.days_since_created(now)
        if age in offsets:
            due.append((lead, age))
    return due


class FollowUpScheduler:
    """
    Scan-and-act job for follow-up reminders, triggered from outside (cron or
    the /jobs/follow-ups endpoint). Re-running it on the same day re-sends the
    same reminders; there is no ledger of what was already sent.
    """

    def __init__(self, leads, dispatcher, days: Iterable[int] = FOLLOW_UP_DAYS,
                 clock: Callable[[], datetime] = utc_now):
        self.leads = leads
        self.dispatcher = dispatcher
        self.days = tuple(days)
        self.clock = clock

    def run(self, now: Optional[datetime] = None) -> List[Reminder]:
        now = now or self.clock()
        open_leads = self.leads.list_by_status(OPEN_STATUSES)
        due = select_due_leads(open_leads, now, self.days)
        logger.info(f"Follow-up scan: {len(open_leads)} open leads, {len(due)} due")

        reminders = []
        for lead, age in due:
            result = self.dispatcher.dispatch(
                lead.id, "follow_up_reminder", custom_data={"days_since": age}, best_effort=True
            )
            reminders.append(Reminder(lead.id, age, result.success, result.error))
        return reminders
