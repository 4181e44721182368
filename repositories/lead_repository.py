"""
Lead repository (persistence only).

Rows live in the `foreclosure_responses` table. Urgency, templates and
status rules stay out of this module.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from domain.errors import StoreError
from domain.lead import Lead
from repositories.client import execute

LEADS_TABLE = "foreclosure_responses"

IMMUTABLE_COLUMNS = ("id", "created_at")


class LeadRepository:
    def __init__(self, client: Any, table: str = LEADS_TABLE):
        self.client = client
        self.table = table

    def insert(self, row: Dict[str, Any]) -> Lead:
        """Insert one lead row and return the stored record (server-generated id)."""
        rows = execute(self.client.table(self.table).insert(row), "insert lead")
        if not rows:
            raise StoreError("Failed to insert lead: no row returned")
        return Lead.from_row(rows[0])

    def get(self, lead_id: str) -> Optional[Lead]:
        rows = execute(
            self.client.table(self.table).select("*").eq("id", lead_id).limit(1),
            "fetch lead",
        )
        return Lead.from_row(rows[0]) if rows else None

    def list_by_status(self, statuses: Iterable[str]) -> List[Lead]:
        rows = execute(
            self.client.table(self.table).select("*").in_("status", list(statuses)),
            "list leads",
        )
        return [Lead.from_row(row) for row in rows]

    def update(self, lead_id: str, changes: Dict[str, Any]) -> Optional[Lead]:
        """Apply column changes; `id` and `created_at` are never written."""
        payload = {k: v for k, v in changes.items() if k not in IMMUTABLE_COLUMNS}
        payload.setdefault("updated_at", datetime.now(timezone.utc).isoformat())
        rows = execute(
            self.client.table(self.table).update(payload).eq("id", lead_id),
            "update lead",
        )
        return Lead.from_row(rows[0]) if rows else None
