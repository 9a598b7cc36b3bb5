import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["APP_ENV"] = "test"
os.environ["EMAIL_PROVIDER"] = "console"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["PASSWORD_HASH_ITERATIONS"] = "1000"
os.environ["SEED_SUPERADMIN_EMAIL"] = ""

import pytest
from fastapi.testclient import TestClient

from main import app
from hdfhr.core.security import hash_password
from hdfhr.core.tokens import create_access_token
from hdfhr.db.session import engine, SessionLocal, get_db
from hdfhr.models.base import Base
from hdfhr.models.models import Admin, Company, CompanyUser, User, UserRole, UserStatus
from hdfhr.services.email_service import EmailSender, get_email_sender

PASSWORD = "Secret123"


class RecordingEmailSender(EmailSender):
    def __init__(self):
        super().__init__(provider="console")
        self.sent = []

    def send(self, to, subject, html, text, category=None):
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text, "category": category})


def make_user(db, email, password=PASSWORD, status=UserStatus.ACTIVE):
    user = User(email=email, password_hash=hash_password(password), status=status)
    db.add(user)
    db.flush()
    return user


def make_super_admin(db, email="root@hdfhr.ch", name="Root Admin"):
    user = make_user(db, email)
    db.add(Admin(id=user.id, name=name, email=email, role=UserRole.SUPER_ADMIN.value, status=True))
    db.commit()
    return user


def make_company(db, name="Acme AG"):
    company = Company(company_name=name, active=True)
    db.add(company)
    db.commit()
    return company


def make_member(db, company, email, role="employee", first_name="Erika", last_name="Muster"):
    user = make_user(db, email)
    db.add(CompanyUser(
        id=user.id, company_id=company.id, first_name=first_name, last_name=last_name,
        email=email, role=role,
    ))
    db.commit()
    return user


def bearer(user, role=None):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email, role)}"}


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def outbox():
    return RecordingEmailSender()


@pytest.fixture
def client(db, outbox):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_sender] = lambda: outbox
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def super_admin(db):
    return make_super_admin(db)


@pytest.fixture
def company(db):
    return make_company(db)


@pytest.fixture
def other_company(db):
    return make_company(db, "Globex GmbH")


@pytest.fixture
def company_admin(db, company):
    return make_member(db, company, "boss@acme.ch", role="admin", first_name="Anna", last_name="Chef")


@pytest.fixture
def employee(db, company):
    return make_member(db, company, "worker@acme.ch")


@pytest.fixture
def outsider(db, other_company):
    return make_member(db, other_company, "someone@globex.ch", first_name="Otto", last_name="Fremd")
