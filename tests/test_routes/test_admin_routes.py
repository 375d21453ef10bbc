def _coach_profile(mock_db, uid, **fields):
    doc = {
        "_id": uid,
        "displayName": f"Coach {uid}",
        "email": f"{uid}@example.com",
        "sport": "tennis",
        "bio": "Serve and volley",
        "isActive": True,
        "profileComplete": True,
        "status": "approved",
        **fields,
    }
    mock_db.creator_profiles.insert_one(doc)
    return doc


def test_admin_routes_require_admin(client, coach, headers_for):
    headers = headers_for(coach)
    assert client.post("/admin/coach-visibility/validate-and-fix", headers=headers).status_code == 403
    assert client.post("/admin/repair-roles", headers=headers).status_code == 403
    assert client.post("/admin/coach-visibility/validate-and-fix").status_code == 401


def test_validate_and_fix(client, admin, headers_for, mock_db):
    _coach_profile(mock_db, "c1")
    _coach_profile(mock_db, "c2", status="suspended")
    mock_db.creators_index.insert_one({"_id": "c2", "isActive": True, "profileComplete": True, "status": "approved"})

    headers = headers_for(admin)
    preview = client.post("/admin/coach-visibility/validate-and-fix", headers=headers, params={"dry_run": True}).json()
    assert preview["dryRun"] is True
    assert preview["fixed"] == 1 and preview["removed"] == 1
    assert mock_db.creators_index.find_one({"_id": "c1"}) is None

    res = client.post("/admin/coach-visibility/validate-and-fix", headers=headers)
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["fixed"] == 1 and body["removed"] == 1
    assert mock_db.creators_index.find_one({"_id": "c1"})["bio"] == "Serve and volley"
    assert mock_db.creators_index.find_one({"_id": "c2"}) is None
    assert mock_db.activity_logs.find_one({"action": "admin_validate_and_fix_visibility"})


def test_ensure_visibility(client, admin, headers_for, mock_db):
    headers = headers_for(admin)
    assert client.post("/admin/coach-visibility/ensure", headers=headers, json={"uid": "c9"}).status_code == 400

    res = client.post(
        "/admin/coach-visibility/ensure",
        headers=headers,
        json={"uid": "c9", "email": "c9@example.com", "displayName": "Nina Park", "sport": "golf"},
    )
    assert res.status_code == 200
    assert res.json()["success"] is True
    assert mock_db.creators_index.find_one({"_id": "c9"})["sport"] == "golf"


def test_batch_and_single_sync(client, admin, headers_for, mock_db):
    _coach_profile(mock_db, "c1")
    _coach_profile(mock_db, "c2")
    headers = headers_for(admin)

    res = client.post("/admin/coaches/batch-sync", headers=headers)
    assert res.status_code == 200
    assert sorted(res.json()["success"]) == ["c1", "c2"]
    assert mock_db.creators_index.count_documents({}) == 2

    res = client.post("/admin/coaches/batch-sync", headers=headers, json={"uids": ["c1"]})
    assert res.json()["success"] == ["c1"]

    res = client.post("/admin/coaches/c1/sync", headers=headers)
    assert res.status_code == 200
    assert mock_db.creatorPublic.find_one({"_id": "c1"})["displayName"] == "Coach c1"
    assert client.post("/admin/coaches/missing/sync", headers=headers).status_code == 404


def test_coach_visibility_report(client, admin, headers_for, mock_db):
    _coach_profile(mock_db, "c1")
    headers = headers_for(admin)
    assert client.get("/admin/coaches/c1/visibility", headers=headers).json()["visible"] is False

    client.post("/admin/coaches/c1/sync", headers=headers)
    report = client.get("/admin/coaches/c1/visibility", headers=headers).json()
    assert report["visible"] is True
    assert report["reason"] == "Visible"


def test_data_fix_endpoints(client, admin, headers_for, mock_db):
    mock_db.users.insert_one({"_id": "legacy", "email": "legacy@example.com", "role": "creator"})
    headers = headers_for(admin)

    preview = client.post("/admin/repair-roles", headers=headers, params={"dry_run": True}).json()
    assert preview["dryRun"] is True
    assert any(c["uid"] == "legacy" for c in preview["changes"])
    assert mock_db.users.find_one({"_id": "legacy"})["role"] == "creator"

    client.post("/admin/repair-roles", headers=headers)
    assert mock_db.users.find_one({"_id": "legacy"})["role"] == "coach"

    for path in (
        "/admin/fix-coach-sports",
        "/admin/fix-missing-created-at",
        "/admin/migrate-athlete-slugs",
        "/admin/fix-athlete-coach-assignment",
    ):
        res = client.post(path, headers=headers, params={"dry_run": True})
        assert res.status_code == 200, path
        assert res.json()["success"] is True
