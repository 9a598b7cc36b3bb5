import httpx
import pytest

from hdfhr.core import config
from hdfhr.core.errors import EmailDeliveryError, NETWORK_MESSAGE, RATE_LIMIT_MESSAGE, user_message
from hdfhr.services.email_service import EmailSender, send_password_reset_email, send_welcome_email


@pytest.fixture
def captured(monkeypatch):
    """Route EmailSender's httpx traffic through a mock transport."""
    state = {"requests": [], "handler": lambda request: httpx.Response(202)}
    real_client = httpx.Client

    def handler(request):
        state["requests"].append(request)
        return state["handler"](request)

    monkeypatch.setattr(httpx, "Client", lambda **kw: real_client(transport=httpx.MockTransport(handler), **kw))
    monkeypatch.setattr(config, "SENDGRID_API_KEY", "sg-key")
    monkeypatch.setattr(config, "MAILTRAP_API_TOKEN", "mt-token")
    monkeypatch.setattr(config, "MAILTRAP_INBOX_ID", "42")
    monkeypatch.setattr(config, "EMAIL_FROM", "noreply@hdfhr.ch")
    return state


def test_sendgrid_request(captured):
    send_password_reset_email(EmailSender(provider="sendgrid"), "erika@acme.ch", "tok123")
    request = captured["requests"][0]
    assert str(request.url) == "https://api.sendgrid.com/v3/mail/send"
    assert request.headers["Authorization"] == "Bearer sg-key"
    body = request.read().decode()
    assert "erika@acme.ch" in body
    assert "hdf-hr://reset-password?token=tok123" in body


def test_mailtrap_request(captured):
    EmailSender(provider="mailtrap").send("erika@acme.ch", "Hi", "<p>Hi</p>", "Hi", category="Test")
    request = captured["requests"][0]
    assert str(request.url) == "https://sandbox.api.mailtrap.io/api/send/42"
    assert request.headers["Authorization"] == "Bearer mt-token"
    assert '"category":"Test"' in request.read().decode().replace(" ", "")


def test_rate_limit_response(captured):
    captured["handler"] = lambda request: httpx.Response(429, text="slow down")
    with pytest.raises(EmailDeliveryError) as exc:
        EmailSender(provider="sendgrid").send("a@b.ch", "s", "h", "t")
    assert user_message(exc.value) == RATE_LIMIT_MESSAGE


def test_provider_error(captured):
    captured["handler"] = lambda request: httpx.Response(500)
    with pytest.raises(EmailDeliveryError, match="Email provider error"):
        EmailSender(provider="sendgrid").send("a@b.ch", "s", "h", "t")


def test_network_failure(captured):
    def fail(request):
        raise httpx.ConnectError("connection refused", request=request)

    captured["handler"] = fail
    with pytest.raises(EmailDeliveryError) as exc:
        EmailSender(provider="mailtrap").send("a@b.ch", "s", "h", "t")
    assert user_message(exc.value) == NETWORK_MESSAGE


def test_missing_credentials(captured, monkeypatch):
    monkeypatch.setattr(config, "SENDGRID_API_KEY", "")
    with pytest.raises(EmailDeliveryError, match="not configured"):
        EmailSender(provider="sendgrid").send("a@b.ch", "s", "h", "t")
    assert captured["requests"] == []


def test_console_provider_sends_nothing(captured):
    EmailSender(provider="console").send("a@b.ch", "s", "h", "t")
    assert captured["requests"] == []


def test_unknown_provider():
    with pytest.raises(EmailDeliveryError, match="Unknown email provider"):
        EmailSender(provider="pigeon").send("a@b.ch", "s", "h", "t")


def test_forgot_password_reports_delivery_failure(client, db, employee, monkeypatch):
    from hdfhr.services.email_service import get_email_sender
    from main import app

    class Broken(EmailSender):
        def send(self, *args, **kwargs):
            raise EmailDeliveryError("Email provider error (500)")

    app.dependency_overrides[get_email_sender] = lambda: Broken(provider="console")
    resp = client.post("/api/auth/forgot-password", json={"email": "worker@acme.ch"})
    assert resp.status_code == 502
    assert resp.json()["detail"] == "Failed to send reset email"


def test_welcome_email_escapes_name():
    sent = []

    class Recorder(EmailSender):
        def send(self, to, subject, html, text, category=None):
            sent.append(html)

    send_welcome_email(Recorder(provider="console"), "eve@acme.ch", "<script>Eve</script>", "tok")
    assert "<script>" not in sent[0]
    assert "&lt;script&gt;Eve&lt;/script&gt;" in sent[0]
