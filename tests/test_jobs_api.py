from datetime import timedelta

from conftest import NOW, OTHER_TENANT, auth_headers, days_from_now


def _job_payload(**overrides):
    payload = {
        "location": "SH1 Northbound, Drury",
        "client_name": "Fulton Hogan",
        "start_date": days_from_now(2).isoformat(),
        "setup_type": "Stop-Go",
        "crew": [{"id": "s1", "name": "Aroha"}],
    }
    payload.update(overrides)
    return payload


def test_requires_a_token(api_client):
    assert api_client.get("/jobs").status_code == 401
    assert api_client.get("/jobs", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_staff_scheduled_job_starts_upcoming(api_client, admin):
    resp = api_client.post("/jobs", json=_job_payload(), headers=auth_headers(admin))
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "Upcoming"
    assert body["displayed_status"] == "Upcoming"
    assert body["job_number"] == "TMV-0001"
    assert body["crew"] == [{"id": "s1", "name": "Aroha"}]

    second = api_client.post("/jobs", json=_job_payload(), headers=auth_headers(admin)).json()
    assert second["job_number"] == "TMV-0002"


def test_end_before_start_is_rejected(api_client, admin):
    payload = _job_payload(end_date=days_from_now(1).isoformat())
    assert api_client.post("/jobs", json=payload, headers=auth_headers(admin)).status_code == 422

    job = api_client.post("/jobs", json=_job_payload(), headers=auth_headers(admin)).json()
    resp = api_client.patch(f"/jobs/{job['id']}", json={"end_date": NOW.isoformat()}, headers=auth_headers(admin))
    assert resp.status_code == 422


def test_update_rejects_null_for_required_fields(api_client, admin):
    headers = auth_headers(admin)
    job = api_client.post("/jobs", json=_job_payload(), headers=headers).json()

    for field in ("start_date", "location", "client_name"):
        resp = api_client.patch(f"/jobs/{job['id']}", json={field: None}, headers=headers)
        assert resp.status_code == 422, field

    resp = api_client.patch(f"/jobs/{job['id']}", json={"location": "SH2, Pokeno", "end_date": None}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["location"] == "SH2, Pokeno"

    rows = api_client.get("/jobs", headers=headers)
    assert rows.status_code == 200
    assert [r["start_date"] for r in rows.json()] == [job["start_date"]]


def test_displayed_status_follows_the_clock(api_client, admin, make_job):
    started = make_job(start=NOW - timedelta(hours=1), end=NOW + timedelta(hours=8))
    finished = make_job(start=NOW - timedelta(days=2), end=NOW - timedelta(days=1))
    pending = make_job(status="Pending", start=NOW - timedelta(days=3))

    rows = {r["id"]: r for r in api_client.get("/jobs", headers=auth_headers(admin)).json()}
    assert rows[str(started.id)]["displayed_status"] == "In Progress"
    assert rows[str(started.id)]["status"] == "Upcoming"
    assert rows[str(finished.id)]["displayed_status"] == "Upcoming"
    assert rows[str(pending.id)]["displayed_status"] == "Pending"


def test_stored_status_filter_and_past_jobs(api_client, admin, make_job):
    make_job(status="Pending")
    make_job(status="Upcoming")
    done = make_job(status="Completed")
    headers = auth_headers(admin)

    pending = api_client.get("/jobs", params={"status": "Pending"}, headers=headers).json()
    assert [r["status"] for r in pending] == ["Pending"]
    past = api_client.get("/jobs/past", headers=headers).json()
    assert [r["id"] for r in past] == [str(done.id)]


def test_client_request_lifecycle(api_client, admin, client_user, client_company):
    resp = api_client.post(
        "/jobs/requests",
        json={"location": "Queen St", "start_date": days_from_now(5).isoformat()},
        headers=auth_headers(client_user),
    )
    assert resp.status_code == 201
    job = resp.json()
    assert job["status"] == "Pending"
    assert job["client_name"] == client_company.name

    approved = api_client.post(f"/jobs/{job['id']}/approve", headers=auth_headers(admin))
    assert approved.status_code == 200
    assert approved.json()["status"] == "Upcoming"

    cancelled = api_client.post(f"/jobs/{job['id']}/cancel", headers=auth_headers(admin))
    assert cancelled.json()["status"] == "Cancelled"

    again = api_client.post(f"/jobs/{job['id']}/approve", headers=auth_headers(admin))
    assert again.status_code == 409


def test_pending_cannot_jump_to_in_progress(api_client, admin, make_job):
    job = make_job(status="Pending")
    resp = api_client.post(f"/jobs/{job.id}/start", headers=auth_headers(admin))
    assert resp.status_code == 409


def test_only_managers_change_jobs(api_client, tc_user, stms_user, make_job):
    job = make_job()
    assert api_client.post("/jobs", json=_job_payload(), headers=auth_headers(tc_user)).status_code == 403
    assert api_client.post(f"/jobs/{job.id}/complete", headers=auth_headers(tc_user)).status_code == 403
    assert api_client.get(f"/jobs/{job.id}", headers=auth_headers(tc_user)).status_code == 200

    resp = api_client.post(f"/jobs/{job.id}/complete", headers=auth_headers(stms_user))
    assert resp.status_code == 200
    assert resp.json()["status"] == "Completed"


def test_clients_only_see_their_own_jobs(api_client, client_user, client_company, make_job):
    mine = make_job(client=client_company)
    make_job()
    rows = api_client.get("/jobs", headers=auth_headers(client_user)).json()
    assert [r["id"] for r in rows] == [str(mine.id)]


def test_tenant_isolation(api_client, admin, other_admin, super_admin, make_job):
    theirs = make_job(tenant_id=OTHER_TENANT)

    assert api_client.get("/jobs", headers=auth_headers(admin)).json() == []
    assert api_client.get(f"/jobs/{theirs.id}", headers=auth_headers(admin)).status_code == 404
    assert api_client.get("/jobs", params={"tenant_id": OTHER_TENANT}, headers=auth_headers(admin)).status_code == 403
    assert api_client.get(f"/jobs/{theirs.id}", headers=auth_headers(other_admin)).status_code == 200

    switched = api_client.get("/jobs", params={"tenant_id": OTHER_TENANT}, headers=auth_headers(super_admin)).json()
    assert [r["id"] for r in switched] == [str(theirs.id)]


def test_delete_job(api_client, admin, make_job):
    job = make_job()
    assert api_client.delete(f"/jobs/{job.id}", headers=auth_headers(admin)).json() == {"status": "ok"}
    assert api_client.get(f"/jobs/{job.id}", headers=auth_headers(admin)).status_code == 404
