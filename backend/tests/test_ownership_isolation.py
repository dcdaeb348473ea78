from __future__ import annotations


def _create_job(client, company: str = "Acme"):
    res = client.post("/api/jobs", json={"company": company, "role": "Engineer"})
    assert res.status_code == 201
    return res.json()


def test_user_cannot_access_other_users_job(users, client_for):
    user_a, user_b = users

    with client_for(user_a) as c_a:
        job = _create_job(c_a)

    with client_for(user_b) as c_b:
        res = c_b.get(f"/api/jobs/{job['id']}")
        assert res.status_code == 404
        assert res.json()["error"] == "NOT_FOUND"
        assert "company" not in res.json()

        assert c_b.patch(f"/api/jobs/{job['id']}", json={"status": "Offer"}).status_code == 404
        assert c_b.delete(f"/api/jobs/{job['id']}").status_code == 404

    # Untouched for the owner.
    with client_for(user_a) as c_a2:
        res = c_a2.get(f"/api/jobs/{job['id']}")
        assert res.status_code == 200
        assert res.json()["status"] == "Applied"


def test_not_owned_and_missing_look_identical(users, client_for):
    user_a, user_b = users

    with client_for(user_a) as c_a:
        job = _create_job(c_a)

    with client_for(user_b) as c_b:
        not_owned = c_b.get(f"/api/jobs/{job['id']}")
        missing = c_b.get("/api/jobs/00000000-0000-0000-0000-000000000000")
        assert not_owned.status_code == missing.status_code == 404
        assert not_owned.json() == missing.json()


def test_user_list_and_stats_only_cover_their_jobs(users, client_for):
    user_a, user_b = users

    with client_for(user_a) as c_a:
        _create_job(c_a, "A1")
        _create_job(c_a, "A2")

    with client_for(user_b) as c_b:
        _create_job(c_b, "B1")

    with client_for(user_a) as c_a2:
        res = c_a2.get("/api/jobs")
        assert res.status_code == 200
        assert sorted(j["company"] for j in res.json()) == ["A1", "A2"]
        assert c_a2.get("/api/jobs/stats").json()["total"] == 2

    with client_for(user_b) as c_b2:
        res = c_b2.get("/api/jobs")
        assert [j["company"] for j in res.json()] == ["B1"]
        assert c_b2.get("/api/jobs/stats").json()["total"] == 1


def test_requests_without_token_are_unauthorized(app):
    from fastapi.testclient import TestClient

    with TestClient(app) as c:
        res = c.get("/api/jobs")
        assert res.status_code == 401
        assert res.json()["error"] == "UNAUTHORIZED"
        assert c.post("/api/jobs", json={"company": "Acme", "role": "Engineer"}).status_code == 401
        assert c.get("/api/jobs/stats").status_code == 401
