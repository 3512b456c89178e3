"""
Audit trail
"""
import random

import pytest

from Audit.audit import AuditTrail, compute_diff
from errors import NotFound
from Store.table import MemoryStore


class TestComputeDiff:
    def test_reports_changed_keys_of_new(self):
        assert compute_diff({"a": 1, "b": 2}, {"a": 1, "b": 3}) == "b: 2 -> 3"

    def test_keys_only_in_old_are_not_reported(self):
        assert compute_diff({"a": 1, "gone": "x"}, {"a": 2}) == "a: 1 -> 2"

    def test_keys_only_in_new_show_empty_before(self):
        assert compute_diff({}, {"a": "x"}) == "a:  -> x"

    def test_multiple_changes_joined_in_key_order(self):
        assert compute_diff({"a": 1, "b": 1}, {"b": 2, "a": 2}) == "b: 1 -> 2; a: 1 -> 2"

    @pytest.mark.parametrize("old, new", [(None, {"a": 1}), ({"a": 1}, None), (None, None)])
    def test_missing_side_gives_empty_diff(self, old, new):
        assert compute_diff(old, new) == ""

    def test_no_changes(self):
        assert compute_diff({"a": 1}, {"a": 1}) == ""

    def test_password_fields_are_redacted(self):
        diff = compute_diff({"hashed_password": "$argon2$old"}, {"hashed_password": "$argon2$new",
                                                                  "password": "hunter2"})
        assert "$argon2" not in diff
        assert "hunter2" not in diff
        assert "hashed_password: [redacted] -> [redacted]" in diff


class TestLog:
    def test_appends_entry(self, store):
        entry = AuditTrail(store, actor="USR1").log("Students", "STD1", "update",
                                                    {"year": 1}, {"year": 2})
        assert entry["log_id"].startswith("LOG")
        assert entry["user_id"] == "USR1"
        assert entry["diff"] == "year: 1 -> 2"
        assert entry["notes"] == ""
        assert entry["timestamp"].endswith("Z")
        assert store.table("AuditLog").scan() == [entry]

    def test_default_actor_is_system(self, store):
        assert AuditTrail(store).log("Users", "USR1", "delete")["user_id"] == "system"

    def test_missing_table_is_skipped(self, caplog):
        store = MemoryStore.provisioned(exclude=["AuditLog"])
        assert AuditTrail(store, fail_closed=False).log("Users", "USR1", "create") is None
        assert "AuditLog sheet not found" in caplog.text

    def test_missing_table_fails_closed(self):
        store = MemoryStore.provisioned(exclude=["AuditLog"])
        with pytest.raises(NotFound):
            AuditTrail(store, fail_closed=True).log("Users", "USR1", "create")


def _entry(i, timestamp, **extra):
    return {"log_id": f"LOG{i}", "sheet_name": "Students", "entity_id": f"STD{i % 2}",
            "action": "update", "user_id": "system", "timestamp": timestamp, **extra}


class TestQuery:
    @pytest.fixture
    def trail(self, store):
        stamps = [f"2024-01-{day:02d}T10:00:00.000Z" for day in range(1, 11)]
        random.Random(7).shuffle(stamps)
        for i, ts in enumerate(stamps):
            store.table("AuditLog").append(_entry(i, ts))
        return AuditTrail(store)

    def test_newest_first(self, trail):
        stamps = [e["timestamp"] for e in trail.query()]
        assert stamps == sorted(stamps, reverse=True)
        assert len(stamps) == 10

    def test_exact_filters(self, trail):
        logs = trail.query({"entity_id": "STD1"})
        assert len(logs) == 5
        assert {e["entity_id"] for e in logs} == {"STD1"}
        assert trail.query({"action": "delete"}) == []

    def test_empty_filters_are_ignored(self, trail):
        assert len(trail.query({"entity_id": "", "action": None})) == 10

    def test_inclusive_date_range(self, trail):
        logs = trail.query({"start_date": "2024-01-03T10:00:00.000Z",
                            "end_date": "2024-01-05T10:00:00.000Z"})
        assert [e["timestamp"][:10] for e in logs] == ["2024-01-05", "2024-01-04", "2024-01-03"]

    def test_invalid_date(self, trail):
        result = trail.get_audit_logs({"start_date": "yesterday"})
        assert result["success"] is False
        assert result["code"] == "validation_error"

    def test_get_audit_logs_envelope(self, trail):
        result = trail.get_audit_logs({"sheet_name": "Students"})
        assert result["success"]
        assert len(result["logs"]) == 10

    def test_missing_table(self):
        store = MemoryStore.provisioned(exclude=["AuditLog"])
        assert AuditTrail(store).get_audit_logs()["code"] == "not_found"
