from datetime import datetime, timedelta

from conftest import bearer
from hdfhr.core import config
from hdfhr.models.models import ActivityLog, ActivityLogArchive, User, UserStatus
from hdfhr.services.activity_service import (
    cleanup_expired_reset_tokens, get_system_user, log_activity, run_log_maintenance,
)

NOW = datetime(2026, 6, 1, 12, 0, 0)


def add_logs(db, user_id, count, age_days):
    for i in range(count):
        entry = log_activity(db, user_id, "data_access", f"entry {i}", metadata={"i": i})
        entry.created_at = NOW - timedelta(days=age_days, minutes=i)
    db.commit()


def test_log_activity_serializes_metadata(db, employee):
    entry = log_activity(db, employee.id, "UPDATE", "changed", metadata={"when": NOW},
                         old_value={"a": 1}, new_value={"a": 2})
    db.commit()
    assert entry.details == '{"when": "2026-06-01 12:00:00"}'
    assert entry.old_value == '{"a": 1}'


def test_system_user_is_created_once_and_cannot_sign_in(db):
    first = get_system_user(db)
    second = get_system_user(db)
    assert first.id == second.id
    assert first.email == "system@maintenance.internal"
    assert first.status == UserStatus.INACTIVE


def test_old_logs_are_archived(db, employee):
    add_logs(db, employee.id, 3, age_days=120)
    add_logs(db, employee.id, 2, age_days=1)
    summary = run_log_maintenance(db, now=NOW)
    assert summary["time_based_archived_count"] == 3
    assert summary["main_table_overflow_archived"] == 0
    assert db.query(ActivityLogArchive).count() == 3
    # 2 recent entries plus the maintenance summary
    assert db.query(ActivityLog).count() == 3
    last = db.query(ActivityLog).filter(ActivityLog.activity_type == "system_maintenance").one()
    assert last.user_id == summary["system_user_id"]


def test_main_table_overflow_keeps_headroom(db, employee, monkeypatch):
    monkeypatch.setattr(config, "LOG_MAIN_TABLE_THRESHOLD", 10)
    monkeypatch.setattr(config, "LOG_OVERFLOW_HEADROOM", 3)
    add_logs(db, employee.id, 15, age_days=1)
    summary = run_log_maintenance(db, now=NOW)
    # 15 - 10 + 3
    assert summary["main_table_overflow_archived"] == 8
    assert db.query(ActivityLog).filter(ActivityLog.activity_type == "data_access").count() == 7
    archived = {row.description for row in db.query(ActivityLogArchive).all()}
    # oldest entries go first
    assert "entry 14" in archived and "entry 0" not in archived


def test_archive_overflow_and_age_pruning(db, employee, monkeypatch):
    monkeypatch.setattr(config, "LOG_ARCHIVE_TABLE_THRESHOLD", 5)
    monkeypatch.setattr(config, "LOG_OVERFLOW_HEADROOM", 1)
    add_logs(db, employee.id, 4, age_days=400)
    add_logs(db, employee.id, 4, age_days=100)
    summary = run_log_maintenance(db, now=NOW)
    assert summary["time_based_archived_count"] == 8
    # 8 - 5 + 1 oldest removed: exactly the 400-day-old rows
    assert summary["archive_table_overflow_deleted"] == 4
    assert summary["old_archive_deleted_count"] == 0
    assert db.query(ActivityLogArchive).count() == 4


def test_archive_rows_older_than_a_year_are_deleted(db, employee):
    add_logs(db, employee.id, 2, age_days=400)
    summary = run_log_maintenance(db, now=NOW)
    assert summary["time_based_archived_count"] == 2
    assert summary["old_archive_deleted_count"] == 2
    assert db.query(ActivityLogArchive).count() == 0


def test_expired_reset_tokens_are_cleared(db, employee, company_admin):
    employee.reset_token = "c" * 64
    employee.reset_token_expires = NOW - timedelta(hours=2)
    company_admin.reset_token = "d" * 64
    company_admin.reset_token_expires = NOW + timedelta(hours=2)
    db.commit()
    result = cleanup_expired_reset_tokens(db, now=NOW)
    assert result["expired_tokens_removed"] == 1
    db.refresh(employee)
    db.refresh(company_admin)
    assert employee.reset_token is None
    assert company_admin.reset_token == "d" * 64


def test_maintenance_endpoints_are_super_admin_only(client, super_admin, company_admin):
    assert client.post("/api/maintenance/logs", headers=bearer(company_admin)).status_code == 403
    resp = client.post("/api/maintenance/logs", headers=bearer(super_admin))
    assert resp.status_code == 200
    assert set(resp.json()) >= {"time_based_archived_count", "system_user_id"}
    tokens = client.post("/api/maintenance/reset-tokens", headers=bearer(super_admin))
    assert tokens.json()["expired_tokens_removed"] == 0


def test_activity_log_listing_is_scoped(client, db, company, company_admin, employee, outsider):
    log_activity(db, employee.id, "login", "employee in", company_id=company.id)
    log_activity(db, company_admin.id, "login", "admin in", company_id=company.id)
    log_activity(db, outsider.id, "login", "outsider in")
    db.commit()
    mine = client.get("/api/activity-logs", headers=bearer(employee)).json()
    assert [e["description"] for e in mine] == ["employee in"]
    company_logs = {e["description"] for e in client.get("/api/activity-logs", headers=bearer(company_admin)).json()}
    assert company_logs == {"employee in", "admin in"}
