import pytest
from jinja2 import UndefinedError

from playbookd import settings
from playbookd.services import mailer
from playbookd.services.mailer import send_email as real_send_email
from playbookd.utils.audit import Actor, write_audit_event


def test_render_status_template():
    subject, body = mailer.render(
        "invitation_status", inviter_name="Casey", name="Riley", email="r@example.com",
        status="declined", reason="Signed with another club",
    )
    assert subject == "Invitation for Riley was declined"
    assert "Reason: Signed with another club" in body


def test_render_rejects_missing_context():
    with pytest.raises(UndefinedError):
        mailer.render("new_message", name="Casey")


def test_try_send_reports_unconfigured_smtp(monkeypatch):
    monkeypatch.setattr(mailer, "send_email", real_send_email)
    monkeypatch.setattr(settings, "SMTP_HOST", "")
    sent, error = mailer.try_send_template(
        "r@example.com", "new_message",
        name="Riley", sender_name="Casey", subject="Hi", body="Hello there", url="http://x",
    )
    assert sent is False
    assert error == "Email is not configured"


def test_audit_event_normalizes_actor(mock_db):
    write_audit_event(action="thing_done", ok=True, actor={"_id": "u1", "email": "a@example.com", "role": "coach"})
    write_audit_event(action="other_thing", ok=False, actor=Actor(user_id="u2"), err="nope", severity="high")

    first = mock_db.audit_events.find_one({"action": "thing_done"})
    assert first["actor"]["user_id"] == "u1"
    assert first["source"] == "api"

    second = mock_db.audit_events.find_one({"action": "other_thing"})
    assert second["actor"]["user_id"] == "u2"
    assert second["err"] == "nope" and second["severity"] == "high"
