from datetime import datetime, timedelta, timezone

from playbookd import storage


def _submit(client, headers_for, user, **overrides):
    payload = {
        "videoFileName": "free throws.mp4",
        "videoFileSize": 1024,
        "videoDuration": 42.5,
        "videoStoragePath": f"submissions/{user['_id']}/up1/free_throws.mp4",
        "athleteContext": "Working on my follow-through",
    }
    payload.update(overrides)
    return client.post("/submissions", headers=headers_for(user), json=payload)


def test_upload_url(client, athlete, coach, headers_for, monkeypatch):
    monkeypatch.setattr(storage, "presigned_upload_url", lambda key: f"https://s3.local/{key}?sig=1")

    res = client.post("/submissions/upload-url", headers=headers_for(athlete), json={"videoFileName": "my clip.mov"})
    assert res.status_code == 200
    body = res.json()
    assert body["videoStoragePath"].startswith(f"submissions/{athlete['_id']}/")
    assert body["videoStoragePath"].endswith("/my_clip.mov")
    assert body["uploadUrl"].startswith("https://s3.local/")

    assert client.post("/submissions/upload-url", headers=headers_for(coach), json={"videoFileName": "a.mp4"}).status_code == 403


def test_create_submission(client, athlete, headers_for, mock_db):
    res = _submit(client, headers_for, athlete)
    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "pending"

    sub = mock_db.submissions.find_one({"_id": body["submissionId"]})
    assert sub["athleteUid"] == athlete["_id"]
    assert sub["teamId"] == athlete["_id"]
    assert sub["claimedBy"] is None

    uploading = _submit(client, headers_for, athlete, videoStoragePath=None).json()
    assert uploading["status"] == "uploading"


def test_plan_limits_and_role(client, make_user, coach, headers_for):
    free = make_user("athlete")
    assert _submit(client, headers_for, free).status_code == 403
    assert _submit(client, headers_for, coach).status_code == 403


def test_full_review_lifecycle(client, athlete, coach, headers_for, mock_db):
    submission_id = _submit(client, headers_for, athlete).json()["submissionId"]
    coach_headers = headers_for(coach)

    # unassigned pending work shows up in every coach's queue
    queue = client.get("/submissions", headers=coach_headers, params={"status": "pending"}).json()
    assert [s["id"] for s in queue["submissions"]] == [submission_id]

    res = client.post(f"/submissions/{submission_id}/claim", headers=coach_headers)
    assert res.status_code == 200
    assert res.json()["claimedBy"] == coach["_id"]

    # second claim fails: no longer pending
    assert client.post(f"/submissions/{submission_id}/claim", headers=coach_headers).status_code == 400

    review = {"summary": "Good base, rushed release.", "strengths": ["balance"], "improvements": ["tempo"], "rating": 4}
    res = client.post(f"/submissions/{submission_id}/review", headers=coach_headers, json=review)
    assert res.status_code == 200
    review_id = res.json()["reviewId"]

    sub = mock_db.submissions.find_one({"_id": submission_id})
    assert sub["status"] == "reviewed"
    assert sub["reviewId"] == review_id
    assert sub["slaBreach"] is False
    assert mock_db.notifications.find_one({"userId": athlete["_id"], "type": "submission_reviewed"})

    detail = client.get(f"/submissions/{submission_id}", headers=headers_for(athlete)).json()
    assert detail["review"]["summary"] == "Good base, rushed release."
    assert detail["review"]["id"] == review_id

    assert client.post(f"/submissions/{submission_id}/complete", headers=coach_headers).status_code == 403
    res = client.post(f"/submissions/{submission_id}/complete", headers=headers_for(athlete))
    assert res.status_code == 200
    assert mock_db.submissions.find_one({"_id": submission_id})["status"] == "complete"


def test_only_claimer_can_review(client, athlete, coach, make_user, headers_for):
    submission_id = _submit(client, headers_for, athlete).json()["submissionId"]
    review = {"summary": "Looks good"}

    # not yet claimed by anyone
    assert client.post(f"/submissions/{submission_id}/review", headers=headers_for(coach), json=review).status_code == 403

    client.post(f"/submissions/{submission_id}/claim", headers=headers_for(coach))
    other = make_user("coach")
    assert client.post(f"/submissions/{submission_id}/review", headers=headers_for(other), json=review).status_code == 403


def test_late_review_marks_sla_breach(client, athlete, coach, headers_for, mock_db):
    submission_id = _submit(client, headers_for, athlete).json()["submissionId"]
    mock_db.submissions.update_one(
        {"_id": submission_id},
        {"$set": {"slaDeadline": datetime.now(timezone.utc) - timedelta(hours=1)}},
    )
    client.post(f"/submissions/{submission_id}/claim", headers=headers_for(coach))
    client.post(f"/submissions/{submission_id}/review", headers=headers_for(coach), json={"summary": "Late but thorough"})

    assert mock_db.submissions.find_one({"_id": submission_id})["slaBreach"] is True


def test_assigned_submission_cannot_be_claimed_by_other_coach(client, make_user, coach, headers_for):
    assigned = make_user("athlete", coachId=coach["_id"], subscription={"tier": "elite", "status": "active"})
    submission_id = _submit(client, headers_for, assigned).json()["submissionId"]

    other = make_user("coach")
    assert client.post(f"/submissions/{submission_id}/claim", headers=headers_for(other)).status_code == 403
    assert client.post(f"/submissions/{submission_id}/claim", headers=headers_for(coach)).status_code == 200


def test_access_is_limited_to_participants(client, athlete, make_user, admin, headers_for):
    submission_id = _submit(client, headers_for, athlete).json()["submissionId"]
    stranger = make_user("athlete")

    assert client.get(f"/submissions/{submission_id}", headers=headers_for(stranger)).status_code == 403
    assert client.get(f"/submissions/{submission_id}", headers=headers_for(admin)).status_code == 200
    assert client.get("/submissions/missing", headers=headers_for(admin)).status_code == 404
    assert client.get("/submissions", headers=headers_for(stranger)).json()["total"] == 0


def test_patch_finishes_upload(client, athlete, headers_for, mock_db):
    submission_id = _submit(client, headers_for, athlete, videoStoragePath=None).json()["submissionId"]
    res = client.patch(
        f"/submissions/{submission_id}",
        headers=headers_for(athlete),
        json={"videoStoragePath": f"submissions/{athlete['_id']}/up2/clip.mp4", "uploadComplete": True, "status": "complete"},
    )
    assert res.status_code == 200
    sub = mock_db.submissions.find_one({"_id": submission_id})
    assert sub["status"] == "pending"
    assert sub["videoStoragePath"] == f"submissions/{athlete['_id']}/up2/clip.mp4"


def test_playback_url(client, athlete, headers_for, monkeypatch, mock_db):
    monkeypatch.setattr(storage, "presigned_playback_url", lambda key: f"https://s3.local/{key}")
    submission_id = _submit(client, headers_for, athlete).json()["submissionId"]

    res = client.get(f"/submissions/{submission_id}/playback-url", headers=headers_for(athlete))
    assert res.status_code == 200
    assert res.json()["url"] == f"https://s3.local/submissions/{athlete['_id']}/up1/free_throws.mp4"
    assert mock_db.submissions.find_one({"_id": submission_id})["viewCount"] == 1

    pending_upload = _submit(client, headers_for, athlete, videoStoragePath=None).json()["submissionId"]
    assert client.get(f"/submissions/{pending_upload}/playback-url", headers=headers_for(athlete)).status_code == 404


def test_foreign_video_keys_are_rejected(client, athlete, make_user, headers_for, mock_db, monkeypatch):
    monkeypatch.setattr(storage, "presigned_playback_url", lambda key: f"https://s3.local/{key}")
    victim = make_user("athlete")
    foreign = f"submissions/{victim['_id']}/up9/private.mp4"

    assert _submit(client, headers_for, athlete, videoStoragePath=foreign).status_code == 400
    assert _submit(client, headers_for, athlete, videoStoragePath=f"submissions/{athlete['_id']}/../x.mp4").status_code == 400

    submission_id = _submit(client, headers_for, athlete).json()["submissionId"]
    res = client.patch(f"/submissions/{submission_id}", headers=headers_for(athlete), json={"videoStoragePath": foreign})
    assert res.status_code == 400
    assert mock_db.submissions.find_one({"_id": submission_id})["videoStoragePath"].startswith(f"submissions/{athlete['_id']}/")

    # rows written before the check existed are not signed either
    mock_db.submissions.update_one({"_id": submission_id}, {"$set": {"videoStoragePath": foreign}})
    assert client.get(f"/submissions/{submission_id}/playback-url", headers=headers_for(athlete)).status_code == 403
