from conftest import bearer, make_member
from hdfhr.models.models import ActivityLog, CompanyUser, User, UserStatus


def test_super_admin_creates_company(client, super_admin):
    payload = {
        "company_name": "Initech SA",
        "contact_email": "info@initech.ch",
        "address": {"line1": "Bahnhofstrasse 1", "city": "Zurich", "postal_code": "8001", "country": "CH"},
        "stakeholders": [{"name": "Bill", "percentage": 60}, {"name": "Peter", "percentage": 40}],
    }
    resp = client.post("/api/companies", json=payload, headers=bearer(super_admin))
    assert resp.status_code == 200
    data = resp.json()
    assert data["company_name"] == "Initech SA"
    assert data["address"]["city"] == "Zurich"
    assert [s["name"] for s in data["stakeholders"]] == ["Bill", "Peter"]
    assert data["active"] is True
    assert data["employee_count"] == 0


def test_company_admin_cannot_create_company(client, company_admin):
    resp = client.post("/api/companies", json={"company_name": "Nope"}, headers=bearer(company_admin))
    assert resp.status_code == 403


def test_company_users_only_see_own_company(client, company, other_company, company_admin, employee):
    listed = client.get("/api/companies", headers=bearer(employee)).json()
    assert [c["id"] for c in listed] == [company.id]
    assert client.get(f"/api/companies/{other_company.id}", headers=bearer(company_admin)).status_code == 404
    own = client.get(f"/api/companies/{company.id}", headers=bearer(company_admin)).json()
    assert own["employee_count"] == 2


def test_deactivate_company(client, db, company, super_admin):
    resp = client.delete(f"/api/companies/{company.id}", headers=bearer(super_admin))
    assert resp.status_code == 200
    db.refresh(company)
    assert company.active is False


def test_company_admin_creates_employee_with_invite(client, db, outbox, company, company_admin):
    payload = {"email": "New.Hire@acme.ch", "first_name": "Nina", "last_name": "Neu",
               "job_title": "Accountant", "workload_percentage": 80}
    resp = client.post("/api/employees", json=payload, headers=bearer(company_admin))
    assert resp.status_code == 200
    data = resp.json()
    assert data["email"] == "new.hire@acme.ch"
    assert data["company_id"] == company.id
    assert data["role"] == "employee"

    user = db.query(User).filter(User.id == data["id"]).one()
    assert user.status == UserStatus.ACTIVE
    assert user.reset_token is not None
    assert len(outbox.sent) == 1
    assert user.reset_token in outbox.sent[0]["text"]
    assert outbox.sent[0]["category"] == "Welcome Email"


def test_employee_with_password_gets_no_invite(client, outbox, company_admin):
    payload = {"email": "ready@acme.ch", "first_name": "Rea", "last_name": "Dy", "password": "Ready1234"}
    assert client.post("/api/employees", json=payload, headers=bearer(company_admin)).status_code == 200
    assert outbox.sent == []
    login = client.post("/api/auth/login", json={"email": "ready@acme.ch", "password": "Ready1234"})
    assert login.json()["user"]["role"] == "employee"


def test_company_admin_cannot_create_admins_or_use_other_company(client, other_company, company_admin):
    admin_payload = {"email": "a2@acme.ch", "first_name": "A", "last_name": "Two", "role": "admin"}
    assert client.post("/api/employees", json=admin_payload, headers=bearer(company_admin)).status_code == 403
    foreign = {"email": "x@acme.ch", "first_name": "X", "last_name": "Y", "company_id": other_company.id}
    assert client.post("/api/employees", json=foreign, headers=bearer(company_admin)).status_code == 403


def test_super_admin_creates_company_admin(client, company, super_admin):
    payload = {"email": "chief@acme.ch", "first_name": "Chief", "last_name": "Admin",
               "role": "admin", "company_id": company.id, "password": "Chief1234"}
    resp = client.post("/api/employees", json=payload, headers=bearer(super_admin))
    assert resp.status_code == 200
    login = client.post("/api/auth/login", json={"email": "chief@acme.ch", "password": "Chief1234"})
    assert login.json()["user"]["role"] == "admin"


def test_super_admin_must_name_company(client, super_admin):
    payload = {"email": "x@acme.ch", "first_name": "X", "last_name": "Y"}
    resp = client.post("/api/employees", json=payload, headers=bearer(super_admin))
    assert resp.status_code == 400


def test_duplicate_employee_email_rejected(client, company_admin, employee):
    payload = {"email": "worker@acme.ch", "first_name": "Dup", "last_name": "Licate"}
    resp = client.post("/api/employees", json=payload, headers=bearer(company_admin))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email already in use"


def test_employee_cannot_manage_employees(client, employee):
    payload = {"email": "x@acme.ch", "first_name": "X", "last_name": "Y"}
    assert client.post("/api/employees", json=payload, headers=bearer(employee)).status_code == 403


def test_employee_listing_is_scoped(client, company_admin, employee, outsider):
    ids = {e["id"] for e in client.get("/api/employees", headers=bearer(company_admin)).json()}
    assert ids == {company_admin.id, employee.id}
    own = client.get("/api/employees", headers=bearer(employee)).json()
    assert [e["id"] for e in own] == [employee.id]
    assert client.get(f"/api/employees/{outsider.id}", headers=bearer(company_admin)).status_code == 404


def test_update_employee_and_deactivate_account(client, db, company_admin, employee):
    resp = client.put(f"/api/employees/{employee.id}", headers=bearer(company_admin),
                      json={"job_title": "Lead", "active_status": "inactive"})
    assert resp.status_code == 200
    assert resp.json()["job_title"] == "Lead"
    db.refresh(employee)
    assert employee.status == UserStatus.INACTIVE


def test_company_admin_cannot_promote(client, company_admin, employee):
    resp = client.put(f"/api/employees/{employee.id}", headers=bearer(company_admin), json={"role": "admin"})
    assert resp.status_code == 403


def test_soft_delete_employee(client, db, company_admin, employee):
    resp = client.delete(f"/api/employees/{employee.id}", headers=bearer(company_admin))
    assert resp.status_code == 200
    member = db.query(CompanyUser).filter(CompanyUser.id == employee.id).one()
    assert member.deleted_at is not None
    assert client.get(f"/api/employees/{employee.id}", headers=bearer(company_admin)).status_code == 404
    login = client.post("/api/auth/login", json={"email": "worker@acme.ch", "password": "Secret123"})
    assert login.status_code == 401
    assert db.query(ActivityLog).filter(ActivityLog.activity_type == "account_deletion").count() == 1


def test_admins_are_super_admin_only(client, super_admin, company_admin):
    assert client.get("/api/admins", headers=bearer(company_admin)).status_code == 403
    resp = client.post("/api/admins", headers=bearer(super_admin),
                       json={"name": "Second Root", "email": "root2@hdfhr.ch", "password": "Rootpass1"})
    assert resp.status_code == 200
    assert resp.json()["role"] == "superadmin"
    names = [a["name"] for a in client.get("/api/admins", headers=bearer(super_admin)).json()]
    assert names == ["Root Admin", "Second Root"]


def test_admin_cannot_delete_self_but_can_remove_others(client, db, super_admin):
    assert client.delete(f"/api/admins/{super_admin.id}", headers=bearer(super_admin)).status_code == 400
    other = client.post("/api/admins", headers=bearer(super_admin),
                        json={"name": "Temp", "email": "temp@hdfhr.ch", "password": "Temppass1"}).json()
    assert client.delete(f"/api/admins/{other['id']}", headers=bearer(super_admin)).status_code == 200
    login = client.post("/api/auth/login", json={"email": "temp@hdfhr.ch", "password": "Temppass1"})
    assert login.status_code == 401


def test_null_for_required_company_field_is_rejected(client, db, company, super_admin):
    resp = client.put(f"/api/companies/{company.id}", headers=bearer(super_admin), json={"company_name": None})
    assert resp.status_code == 422
    db.refresh(company)
    assert company.company_name == "Acme AG"
    resp = client.put(f"/api/companies/{company.id}", headers=bearer(super_admin), json={"address": None})
    assert resp.status_code == 200


def test_null_for_required_employee_field_is_rejected(client, company_admin, employee):
    for field in ("first_name", "last_name", "role", "active_status"):
        resp = client.put(f"/api/employees/{employee.id}", headers=bearer(company_admin), json={field: None})
        assert resp.status_code == 422, field
    resp = client.put(f"/api/employees/{employee.id}", headers=bearer(company_admin), json={"job_title": None})
    assert resp.status_code == 200


def test_null_for_required_admin_field_is_rejected(client, super_admin):
    other = client.post("/api/admins", headers=bearer(super_admin),
                        json={"name": "Temp", "email": "temp@hdfhr.ch", "password": "Temppass1"}).json()
    assert client.put(f"/api/admins/{other['id']}", headers=bearer(super_admin), json={"name": None}).status_code == 422
    assert client.put(f"/api/admins/{other['id']}", headers=bearer(super_admin), json={"status": None}).status_code == 422


def test_company_admin_cannot_deactivate_peer_admin(client, db, company, company_admin):
    peer = make_member(db, company, "peer@acme.ch", role="admin", first_name="Paul", last_name="Peer")
    resp = client.put(f"/api/employees/{peer.id}", headers=bearer(company_admin), json={"active_status": "inactive"})
    assert resp.status_code == 403
    db.refresh(peer)
    assert peer.status == UserStatus.ACTIVE
    login = client.post("/api/auth/login", json={"email": "peer@acme.ch", "password": "Secret123"})
    assert login.status_code == 200


def test_super_admin_can_deactivate_company_admin(client, db, super_admin, company_admin):
    resp = client.put(f"/api/employees/{company_admin.id}", headers=bearer(super_admin),
                      json={"active_status": "inactive"})
    assert resp.status_code == 200
    db.refresh(company_admin)
    assert company_admin.status == UserStatus.INACTIVE


def test_company_admin_edits_own_profile_but_cannot_deactivate_self(client, company_admin):
    resp = client.put(f"/api/employees/{company_admin.id}", headers=bearer(company_admin),
                      json={"job_title": "Managing Director"})
    assert resp.status_code == 200
    resp = client.put(f"/api/employees/{company_admin.id}", headers=bearer(company_admin),
                      json={"active_status": "inactive"})
    assert resp.status_code == 400


def test_resending_legacy_admin_role_is_not_a_role_change(client, db, company):
    legacy = make_member(db, company, "legacy@acme.ch", role="companyadmin", first_name="Lea", last_name="Alt")
    resp = client.put(f"/api/employees/{legacy.id}", headers=bearer(legacy),
                      json={"role": "admin", "phone_number": "+41 44 000 00 00"})
    assert resp.status_code == 200
    member = db.query(CompanyUser).filter(CompanyUser.id == legacy.id).one()
    assert member.role == "companyadmin"
    assert member.phone_number == "+41 44 000 00 00"


def test_bulk_create_reports_failed_rows(client, db, outbox, company, company_admin, employee):
    rows = [
        {"email": "first@acme.ch", "first_name": "First", "last_name": "Hire"},
        {"email": "worker@acme.ch", "first_name": "Dup", "last_name": "Licate"},
        {"email": "second@acme.ch", "first_name": "Second", "last_name": "Hire", "password": "Second123"},
        {"email": "boss2@acme.ch", "first_name": "Boss", "last_name": "Two", "role": "admin"},
    ]
    resp = client.post("/api/employees/bulk", headers=bearer(company_admin), json={"employees": rows})
    assert resp.status_code == 200
    data = resp.json()
    assert [r["email"] for r in data["results"]] == ["first@acme.ch", "second@acme.ch"]
    assert all(r["company_id"] == company.id for r in data["results"])
    assert data["errors"] == [
        {"email": "worker@acme.ch", "error": "Email already in use"},
        {"email": "boss2@acme.ch", "error": "Only super admins can create company admins"},
    ]

    emails = {m.email for m in db.query(CompanyUser).filter(CompanyUser.company_id == company.id)}
    assert {"first@acme.ch", "second@acme.ch"} <= emails
    assert "boss2@acme.ch" not in emails
    assert db.query(User).filter(User.email == "boss2@acme.ch").count() == 0
    assert [m["to"] for m in outbox.sent] == ["first@acme.ch"]
    login = client.post("/api/auth/login", json={"email": "second@acme.ch", "password": "Second123"})
    assert login.status_code == 200


def test_bulk_create_requires_admin(client, employee):
    rows = [{"email": "x@acme.ch", "first_name": "X", "last_name": "Y"}]
    assert client.post("/api/employees/bulk", headers=bearer(employee), json={"employees": rows}).status_code == 403
