from playbookd import settings
from playbookd.services import ai


class FakeClient:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error

    def complete(self, system_prompt, user_prompt):
        if self.error:
            raise self.error
        return self.reply


def test_assist(client, coach, headers_for, monkeypatch):
    monkeypatch.setattr(ai, "get_client", lambda **kw: FakeClient("Strong base and quick feet."))
    res = client.post(
        "/ai/assist",
        headers=headers_for(coach),
        json={"text": "good feet", "action": "polish", "context": "strength"},
    )
    assert res.status_code == 200
    assert res.json() == {"success": True, "text": "Strong base and quick feet."}


def test_assist_rejects_unknown_context(client, coach, headers_for):
    res = client.post(
        "/ai/assist",
        headers=headers_for(coach),
        json={"text": "x", "action": "polish", "context": "poem"},
    )
    assert res.status_code == 400


def test_assist_unconfigured_and_failing(client, coach, headers_for, monkeypatch):
    payload = {"text": "good feet", "action": "transform", "context": "summary"}

    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "")
    assert client.post("/ai/assist", headers=headers_for(coach), json=payload).status_code == 503

    monkeypatch.setattr(ai, "get_client", lambda **kw: FakeClient(error=ai.RateLimitExceeded("slow down")))
    assert client.post("/ai/assist", headers=headers_for(coach), json=payload).status_code == 502


def test_assist_is_for_coaches(client, athlete, headers_for):
    res = client.post(
        "/ai/assist",
        headers=headers_for(athlete),
        json={"text": "x", "action": "polish", "context": "summary"},
    )
    assert res.status_code == 403


def test_generate_lesson_template_fallback(client, coach, headers_for, monkeypatch):
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "")
    res = client.post(
        "/ai/generate-lesson",
        headers=headers_for(coach),
        json={"topic": "guard retention", "sport": "bjj", "duration": "60 minutes"},
    )
    assert res.status_code == 200
    body = res.json()
    assert body["source"] == "template"
    assert body["lesson"]["title"] == "Brazilian Jiu-Jitsu: guard retention"
    assert body["lesson"]["duration"] == 60


def test_generate_lesson_from_model(client, coach, headers_for, monkeypatch):
    reply = '```json\n{"title": "Guard Retention Fundamentals", "sections": [{"title": "Hip escapes"}]}\n```'
    monkeypatch.setattr(ai, "get_client", lambda **kw: FakeClient(reply))
    res = client.post(
        "/ai/generate-lesson",
        headers=headers_for(coach),
        json={"topic": "guard retention", "sport": "bjj"},
    )
    assert res.status_code == 200
    assert res.json()["source"] == "ai"
    assert res.json()["lesson"]["title"] == "Guard Retention Fundamentals"


def test_generate_lesson_api_error(client, coach, headers_for, monkeypatch):
    monkeypatch.setattr(ai, "get_client", lambda **kw: FakeClient(error=ai.AIClientError("boom")))
    res = client.post(
        "/ai/generate-lesson",
        headers=headers_for(coach),
        json={"topic": "guard retention", "sport": "bjj"},
    )
    assert res.status_code == 502
