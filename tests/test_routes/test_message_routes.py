def _contact(client, headers, coach_id, subject="Shooting form", message="Could you look at my release point?"):
    return client.post(
        "/athlete/contact-coach",
        headers=headers,
        json={"coachId": coach_id, "subject": subject, "message": message},
    )


def test_athlete_contacts_coach(client, athlete, coach, headers_for, mock_db, outbox):
    res = _contact(client, headers_for(athlete), coach["_id"])
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["flagged"] is False
    assert body["messageId"].startswith("msg_")

    msg = mock_db.messages.find_one({"_id": body["messageId"]})
    assert msg["status"] == "unread"
    assert msg["athleteName"] == "Alex Athlete"
    assert msg["coachName"] == "Casey Coach"

    note = mock_db.notifications.find_one({"userId": coach["_id"]})
    assert note["type"] == "new_message"
    assert outbox[0][0] == coach["email"]


def test_only_athletes_can_contact_coaches(client, coach, make_user, headers_for):
    other = make_user("coach")
    assert _contact(client, headers_for(coach), other["_id"]).status_code == 403


def test_contact_target_must_be_a_coach(client, athlete, make_user, headers_for):
    assert _contact(client, headers_for(athlete), "nobody").status_code == 404
    peer = make_user("athlete")
    assert _contact(client, headers_for(athlete), peer["_id"]).status_code == 403


def test_length_limits(client, athlete, coach, headers_for):
    headers = headers_for(athlete)
    assert _contact(client, headers, coach["_id"], subject="Hi").status_code == 400
    assert _contact(client, headers, coach["_id"], message="too short").status_code == 400
    assert _contact(client, headers, coach["_id"], message="x" * 1001).status_code == 400


def test_phone_number_is_blocked_and_alerted(client, athlete, coach, headers_for, mock_db):
    res = _contact(client, headers_for(athlete), coach["_id"], message="Text me at 555-123-4567 tonight")
    assert res.status_code == 400
    assert mock_db.messages.count_documents({}) == 0

    alert = mock_db.moderation_alerts.find_one({"athleteId": athlete["_id"]})
    assert alert["severity"] == "critical"
    assert alert["blocked"] is True
    assert alert["status"] == "blocked"
    assert "phone_number_exchange" in alert["reasons"]


def test_flagged_but_not_critical_is_delivered(client, athlete, coach, headers_for, mock_db):
    res = _contact(client, headers_for(athlete), coach["_id"], message="My email is kid@example.com if easier")
    assert res.status_code == 200
    assert res.json()["flagged"] is True

    msg = mock_db.messages.find_one({"_id": res.json()["messageId"]})
    assert msg["moderation"]["severity"] == "medium"
    assert mock_db.moderation_alerts.count_documents({"blocked": False}) == 1


def test_threat_words_are_delivered_for_review(client, athlete, coach, headers_for, mock_db):
    headers = headers_for(athlete)
    for text in ("My knee hurts after sprints, what should I change?", "I killed it at the meet today, thanks coach!"):
        res = _contact(client, headers, coach["_id"], message=text)
        assert res.status_code == 200, text
        assert res.json()["flagged"] is True
        assert mock_db.messages.find_one({"_id": res.json()["messageId"]})["moderation"]["severity"] == "critical"

    alerts = list(mock_db.moderation_alerts.find({"athleteId": athlete["_id"]}))
    assert len(alerts) == 2
    assert all(a["status"] == "pending_review" and a["blocked"] is False for a in alerts)


def test_coach_replies(client, athlete, coach, make_user, headers_for, mock_db, outbox):
    message_id = _contact(client, headers_for(athlete), coach["_id"]).json()["messageId"]
    outbox.clear()

    other = make_user("coach")
    res = client.post("/coach/reply-message", headers=headers_for(other), json={"messageId": message_id, "reply": "Not mine"})
    assert res.status_code == 403

    res = client.post(
        "/coach/reply-message",
        headers=headers_for(coach),
        json={"messageId": message_id, "reply": "Keep your elbow in."},
    )
    assert res.status_code == 200

    msg = mock_db.messages.find_one({"_id": message_id})
    assert msg["status"] == "replied"
    assert msg["reply"] == "Keep your elbow in."
    assert msg["readAt"] is not None
    assert mock_db.notifications.find_one({"userId": athlete["_id"], "type": "message_reply"})
    assert outbox[0][0] == athlete["email"]

    missing = client.post("/coach/reply-message", headers=headers_for(coach), json={"messageId": "msg_x", "reply": "Hello there"})
    assert missing.status_code == 404


def test_inbox_is_scoped(client, athlete, coach, make_user, headers_for):
    _contact(client, headers_for(athlete), coach["_id"])
    stranger = make_user("athlete", subscription={"tier": "elite", "status": "active"})

    assert client.get("/messages", headers=headers_for(coach)).json()["total"] == 1
    assert client.get("/messages", headers=headers_for(athlete)).json()["total"] == 1
    assert client.get("/messages", headers=headers_for(stranger)).json()["total"] == 0
    assert client.get("/messages", headers=headers_for(coach), params={"status": "replied"}).json()["total"] == 0
