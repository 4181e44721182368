from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from config import Settings
from domain.errors import AuthenticationError, StoreError
from repositories.client import SupabaseAuthenticator, create_supabase_client, execute
from repositories.lead_repository import LeadRepository
from repositories.voice_usage_repository import VoiceUsageRepository

ROW = {
    "id": "0b7c",
    "created_at": "2024-06-15T12:00:00+00:00",
    "status": "submitted",
    "contact_name": "Jane Doe",
    "missed_payments": 2,
    "nod": "yes",
}


def _query(data=None, error=None, raises=None):
    query = MagicMock()
    if raises is not None:
        query.execute.side_effect = raises
    else:
        query.execute.return_value = SimpleNamespace(data=data, error=error)
    return query


class TestExecute:
    def test_returns_rows(self):
        assert execute(_query(data=[ROW]), "fetch") == [ROW]

    def test_single_row_wrapped(self):
        assert execute(_query(data=ROW), "fetch") == [ROW]

    def test_no_data(self):
        assert execute(_query(data=None), "fetch") == []

    def test_exception_becomes_store_error(self):
        with pytest.raises(StoreError) as exc:
            execute(_query(raises=RuntimeError("connection reset")), "insert lead")
        assert "insert lead" in str(exc.value)

    def test_error_response_becomes_store_error(self):
        with pytest.raises(StoreError):
            execute(_query(data=None, error={"message": "permission denied"}), "fetch")


class TestLeadRepository:
    def setup_method(self):
        self.client = MagicMock()
        self.table = self.client.table.return_value
        self.repo = LeadRepository(self.client)

    def test_insert(self):
        self.table.insert.return_value = _query(data=[ROW])

        lead = self.repo.insert({"contact_name": "Jane Doe"})

        self.client.table.assert_called_with("foreclosure_responses")
        assert lead.id == "0b7c"
        assert lead.missed_payments == 2

    def test_insert_without_returned_row(self):
        self.table.insert.return_value = _query(data=[])

        with pytest.raises(StoreError):
            self.repo.insert({"contact_name": "Jane Doe"})

    def test_get_missing(self):
        self.table.select.return_value.eq.return_value.limit.return_value = _query(data=[])

        assert self.repo.get("nope") is None

    def test_list_by_status(self):
        self.table.select.return_value.in_.return_value = _query(data=[ROW])

        leads = self.repo.list_by_status(("submitted", "reviewed"))

        self.table.select.return_value.in_.assert_called_with("status", ["submitted", "reviewed"])
        assert [lead.id for lead in leads] == ["0b7c"]

    def test_update_never_writes_identity(self):
        self.table.update.return_value.eq.return_value = _query(data=[dict(ROW, status="reviewed")])

        lead = self.repo.update("0b7c", {"status": "reviewed", "id": "other", "created_at": "2020-01-01"})

        payload = self.table.update.call_args.args[0]
        assert "id" not in payload and "created_at" not in payload
        assert "updated_at" in payload
        assert lead.status == "reviewed"


class TestVoiceUsageRepository:
    def test_since_filter(self):
        client = MagicMock()
        table = client.table.return_value
        filtered = table.select.return_value.eq.return_value
        filtered.gte.return_value.order.return_value = _query(data=[])

        since = SimpleNamespace(isoformat=lambda: "2024-06-08T12:00:00+00:00")
        VoiceUsageRepository(client).list_for_user("user-1", since=since)

        filtered.gte.assert_called_with("created_at", "2024-06-08T12:00:00+00:00")


class TestAuthenticator:
    def setup_method(self):
        self.client = MagicMock()
        self.auth = SupabaseAuthenticator(self.client)

    def test_valid_token(self):
        self.client.auth.get_user.return_value = SimpleNamespace(user=SimpleNamespace(id="user-9"))

        assert self.auth.user_id("Bearer abc") == "user-9"
        self.client.auth.get_user.assert_called_with("abc")

    @pytest.mark.parametrize("header", [None, "", "abc", "Basic abc", "Bearer  "])
    def test_missing_or_malformed_header(self, header):
        with pytest.raises(AuthenticationError):
            self.auth.user_id(header)
        self.client.auth.get_user.assert_not_called()

    def test_rejected_token(self):
        self.client.auth.get_user.side_effect = RuntimeError("invalid JWT")

        with pytest.raises(AuthenticationError):
            self.auth.user_id("Bearer abc")

    def test_no_user(self):
        self.client.auth.get_user.return_value = SimpleNamespace(user=None)

        with pytest.raises(AuthenticationError):
            self.auth.user_id("Bearer abc")


class TestSettings:
    def test_client_requires_url_and_key(self):
        with pytest.raises(StoreError):
            create_supabase_client(Settings(supabase_url=None))
        with pytest.raises(StoreError):
            create_supabase_client(Settings(supabase_url="https://x.supabase.co", supabase_service_key=None))

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ADMIN_EMAIL", "ops@example.org")
        monkeypatch.setenv("CRM_TYPE", "Salesforce")
        monkeypatch.setenv("SITE_URL", "https://example.org/")
        monkeypatch.setenv("HTTP_TIMEOUT", "oops")
        monkeypatch.delenv("URGENT_EMAIL", raising=False)

        settings = Settings.from_env(dotenv=False)

        assert settings.admin_email == "ops@example.org"
        assert settings.urgent_email == "urgent@repmotivatedseller.org"
        assert settings.crm_type == "salesforce"
        assert settings.site_url == "https://example.org"
        assert settings.http_timeout == 20.0
        assert settings.follow_up_days == (1, 3, 7, 14)

    def test_urgent_recipients(self):
        settings = Settings(admin_email="a@x.org", urgent_email="u@x.org", manager_email="m@x.org")
        assert settings.urgent_recipients == ("a@x.org", "u@x.org", "m@x.org")
