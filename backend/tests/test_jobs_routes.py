from __future__ import annotations


def _create_job(client, **overrides):
    payload = {"company": "Acme", "role": "Engineer"}
    payload.update(overrides)
    res = client.post("/api/jobs", json=payload)
    assert res.status_code == 201, res.text
    return res.json()


def _assert_error_shape(res, *, error: str | None = None):
    data = res.json()
    assert isinstance(data, dict)
    assert isinstance(data.get("error"), str) and data["error"]
    assert isinstance(data.get("message"), str) and data["message"]
    if error is not None:
        assert data["error"] == error


def test_create_job_scenario_and_stats(client, users):
    user_a, _ = users
    res = client.post(
        "/api/jobs",
        json={"company": "Acme", "role": "Engineer", "status": "Applied", "appliedDate": "2024-01-10"},
    )
    assert res.status_code == 201
    job = res.json()
    assert job["userId"] == user_a.id
    assert job["status"] == "Applied"
    assert job["appliedDate"] == "2024-01-10"
    assert isinstance(job["id"], str) and job["id"]

    stats = client.get("/api/jobs/stats").json()
    assert stats == {"total": 1, "applied": 1, "interview": 0, "offer": 0, "rejected": 0, "accepted": 0}

    res2 = client.patch(f"/api/jobs/{job['id']}", json={"status": "Interview"})
    assert res2.status_code == 200
    assert res2.json()["status"] == "Interview"

    stats2 = client.get("/api/jobs/stats").json()
    assert stats2 == {"total": 1, "applied": 0, "interview": 1, "offer": 0, "rejected": 0, "accepted": 0}


def test_create_defaults_status_and_applied_date(client):
    job = _create_job(client)
    assert job["status"] == "Applied"
    assert job["appliedDate"]
    assert job["lastUpdated"]
    assert job["createdAt"] and job["updatedAt"]


def test_create_trims_text_and_blank_optionals_become_null(client):
    job = _create_job(client, company="  Globex  ", role=" Designer ", location="   ", salary="", notes=" hi ")
    assert job["company"] == "Globex"
    assert job["role"] == "Designer"
    assert job["location"] is None
    assert job["salary"] is None
    assert job["notes"] == "hi"


def test_create_then_get_round_trip(client):
    payload = {
        "company": "Initech",
        "role": "Backend Engineer",
        "status": "Offer",
        "appliedDate": "2024-02-01",
        "notes": "Referral from Sam",
        "location": "Austin, TX",
        "salary": "$150k",
        "jobUrl": "https://initech.example.com/careers/42",
    }
    created = client.post("/api/jobs", json=payload).json()

    res = client.get(f"/api/jobs/{created['id']}")
    assert res.status_code == 200
    fetched = res.json()
    for key, value in payload.items():
        assert fetched[key] == value


def test_owner_cannot_be_set_or_changed_by_payload(client, users):
    user_a, user_b = users
    job = _create_job(client, userId=user_b.id, user_id=user_b.id, user=user_b.id)
    assert job["userId"] == user_a.id

    res = client.patch(f"/api/jobs/{job['id']}", json={"userId": user_b.id, "notes": "x"})
    assert res.status_code == 200
    assert res.json()["userId"] == user_a.id


def test_create_validation_errors(client):
    res = client.post("/api/jobs", json={"role": "Engineer"})
    assert res.status_code == 400
    _assert_error_shape(res, error="VALIDATION_ERROR")
    assert isinstance(res.json()["details"]["errors"], list)

    res2 = client.post("/api/jobs", json={"company": "   ", "role": "Engineer"})
    assert res2.status_code == 400

    res3 = client.post("/api/jobs", json={"company": "Acme", "role": "Engineer", "status": "Ghosted"})
    assert res3.status_code == 400

    res4 = client.post("/api/jobs", json={"company": "Acme", "role": "Engineer", "jobUrl": "not a url"})
    assert res4.status_code == 400

    assert client.get("/api/jobs").json() == []


def test_patch_validation_errors(client):
    job = _create_job(client)

    assert client.patch(f"/api/jobs/{job['id']}", json={"status": "Pending"}).status_code == 400
    assert client.patch(f"/api/jobs/{job['id']}", json={"company": None}).status_code == 400
    assert client.patch(f"/api/jobs/{job['id']}", json={"status": None}).status_code == 400

    fetched = client.get(f"/api/jobs/{job['id']}").json()
    assert fetched["status"] == "Applied"
    assert fetched["company"] == "Acme"


def test_patch_updates_only_supplied_fields(client):
    job = _create_job(client, location="Remote", notes="first")
    res = client.patch(f"/api/jobs/{job['id']}", json={"notes": "second"})
    assert res.status_code == 200
    body = res.json()
    assert body["notes"] == "second"
    assert body["location"] == "Remote"
    assert body["status"] == "Applied"


def test_any_status_can_move_to_any_other(client):
    job = _create_job(client, status="Rejected")
    for status in ["Accepted", "Applied", "Offer", "Interview", "Rejected"]:
        res = client.patch(f"/api/jobs/{job['id']}", json={"status": status})
        assert res.status_code == 200
        assert res.json()["status"] == status


def test_list_filters_by_status(client):
    _create_job(client, company="A", status="Applied")
    _create_job(client, company="B", status="Interview")
    _create_job(client, company="C", status="Interview")

    res = client.get("/api/jobs", params={"status": "Interview"})
    assert res.status_code == 200
    jobs = res.json()
    assert sorted(j["company"] for j in jobs) == ["B", "C"]
    assert all(j["status"] == "Interview" for j in jobs)


def test_list_default_sort_is_applied_date_desc(client):
    _create_job(client, company="Old", appliedDate="2024-01-01")
    _create_job(client, company="New", appliedDate="2024-03-01")
    _create_job(client, company="Mid", appliedDate="2024-02-01")

    jobs = client.get("/api/jobs").json()
    assert [j["company"] for j in jobs] == ["New", "Mid", "Old"]


def test_list_sort_by_field_and_order(client):
    for company in ["Globex", "Acme", "Initech"]:
        _create_job(client, company=company)

    asc = client.get("/api/jobs", params={"sortBy": "company", "sortOrder": "asc"}).json()
    assert [j["company"] for j in asc] == ["Acme", "Globex", "Initech"]

    desc = client.get("/api/jobs", params={"sortBy": "company", "sortOrder": "desc"}).json()
    assert [j["company"] for j in desc] == ["Initech", "Globex", "Acme"]


def test_list_rejects_unknown_sort_and_status(client):
    res = client.get("/api/jobs", params={"sortBy": "password_hash"})
    assert res.status_code == 400
    _assert_error_shape(res, error="VALIDATION_ERROR")

    assert client.get("/api/jobs", params={"sortOrder": "sideways"}).status_code == 400
    assert client.get("/api/jobs", params={"status": "Ghosted"}).status_code == 400


def test_delete_then_not_found_on_repeat(client):
    job = _create_job(client)

    res = client.delete(f"/api/jobs/{job['id']}")
    assert res.status_code == 200
    assert res.json() == {"message": "Job application deleted"}

    assert client.get(f"/api/jobs/{job['id']}").status_code == 404

    res2 = client.delete(f"/api/jobs/{job['id']}")
    assert res2.status_code == 404
    _assert_error_shape(res2, error="NOT_FOUND")

    stats = client.get("/api/jobs/stats").json()
    assert stats["total"] == 0


def test_unknown_ids_are_not_found(client):
    assert client.get("/api/jobs/does-not-exist").status_code == 404
    assert client.patch("/api/jobs/does-not-exist", json={"notes": "x"}).status_code == 404
    res = client.delete("/api/jobs/does-not-exist")
    assert res.status_code == 404
    _assert_error_shape(res, error="NOT_FOUND")


def test_stats_zero_filled_when_empty(client):
    assert client.get("/api/jobs/stats").json() == {
        "total": 0,
        "applied": 0,
        "interview": 0,
        "offer": 0,
        "rejected": 0,
        "accepted": 0,
    }


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
