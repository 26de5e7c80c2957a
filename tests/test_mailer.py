import pytest

from fooddelivery.config import MailBackend, get_settings
from fooddelivery.mailer import BaseMailer, LogMailer, MailResult, build_mailer


class BrokenMailer(BaseMailer):
    @property
    def provider_name(self) -> str:
        return "broken"

    def deliver(self, mail) -> MailResult:
        raise ConnectionError("smtp down")


def test_send_failure_is_reported_not_raised():
    result = BrokenMailer().send("a@x.com", "Hi", "body")
    assert result.success is False
    assert "smtp down" in result.error_message


def test_log_mailer_keeps_outbox():
    mailer = LogMailer()
    result = mailer.send("a@x.com", "Hi", "body")
    assert result.success is True
    assert [m.to_email for m in mailer.outbox] == ["a@x.com"]


def test_sendgrid_backend_needs_api_key():
    settings = get_settings().model_copy(update={"mail_backend": MailBackend.SENDGRID, "sendgrid_api_key": None})
    with pytest.raises(ValueError):
        build_mailer(settings)


def test_registration_survives_mail_failure(client):
    from fooddelivery.main import app
    from fooddelivery.mailer import get_mailer
    from conftest import USER

    app.dependency_overrides[get_mailer] = lambda: BrokenMailer()
    r = client.post("/auth/register", json=USER)
    assert r.status_code == 201
    assert client.post("/auth/login", json={"email": USER["email"], "password": USER["password"]}).status_code == 200
