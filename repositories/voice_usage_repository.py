from datetime import datetime
from typing import Any, Dict, List, Optional

from domain.errors import StoreError
from repositories.client import execute

VOICE_USAGE_TABLE = "voice_usage"


class VoiceUsageRepository:
    """Append-only log of text-to-speech usage. There is no update or delete path."""

    def __init__(self, client: Any):
        self.client = client

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        rows = execute(self.client.table(VOICE_USAGE_TABLE).insert(row), "log voice usage")
        if not rows:
            raise StoreError("Failed to log voice usage: no row returned")
        return rows[0]

    def list_for_user(self, user_id: str, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        query = self.client.table(VOICE_USAGE_TABLE).select("*").eq("user_id", user_id)
        if since is not None:
            query = query.gte("created_at", since.isoformat())
        return execute(query.order("created_at", desc=True), "list voice usage")
