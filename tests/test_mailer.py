import smtplib

import pytest

from app.config import Settings
from app.mailer import SmtpMailer


class FakeSMTP:
    instances = []

    def __init__(self, host, port, fail_on=None):
        self.host = host
        self.port = port
        self.fail_on = fail_on
        self.sent = []
        self.closed = False
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True

    def _step(self, name):
        if self.fail_on == name:
            raise smtplib.SMTPException(f"{name} refused")

    def starttls(self):
        self._step("starttls")

    def login(self, user, password):
        self._step("login")

    def sendmail(self, sender, to, message):
        self._step("sendmail")
        self.sent.append((sender, to, message))


@pytest.fixture
def mail_settings():
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_key="key",
        database_url="sqlite://",
        storage_bucket_id="resources",
        mail_username="library@example.edu",
        mail_password="app-password",
        mail_server="smtp.example.edu",
        mail_port=2525,
    )


@pytest.fixture
def smtp(monkeypatch):
    FakeSMTP.instances = []

    def connect(fail_on=None):
        monkeypatch.setattr(smtplib, "SMTP", lambda host, port: FakeSMTP(host, port, fail_on))
        return FakeSMTP.instances

    return connect


def test_sends_and_closes_the_connection(mail_settings, smtp):
    connections = smtp()

    assert SmtpMailer(mail_settings)("asha@example.edu", "Reset", "link") is True

    (server,) = connections
    assert (server.host, server.port) == ("smtp.example.edu", 2525)
    assert server.sent[0][1] == "asha@example.edu"
    assert server.closed


@pytest.mark.parametrize("step", ["starttls", "login", "sendmail"])
def test_failed_step_still_closes_the_connection(mail_settings, smtp, step):
    connections = smtp(fail_on=step)

    assert SmtpMailer(mail_settings)("asha@example.edu", "Reset", "link") is False
    assert connections[0].closed


def test_without_sender_nothing_is_sent(mail_settings, smtp):
    connections = smtp()
    mail_settings.mail_username = ""

    assert SmtpMailer(mail_settings)("asha@example.edu", "Reset", "link") is False
    assert connections == []
