from tmhub.models.models import ClientRegistration, User

from conftest import OTHER_TENANT, PASSWORD, TENANT, auth_headers


def _signup(api_client, email="pm@downer.nz"):
    return api_client.post(
        "/auth/client-signup",
        json={
            "company_name": "Downer Civil",
            "contact_name": "Mere Tipene",
            "email": email,
            "phone": "09 555 0199",
            "password": "s3cure-pass",
        },
    )


def test_login_and_me(api_client, admin):
    resp = api_client.post("/auth/login", json={"email": "ADMIN@trafficflow.nz", "password": PASSWORD})
    assert resp.status_code == 200
    tokens = resp.json()
    me = api_client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}).json()
    assert me["email"] == admin.email
    assert me["tenant_id"] == TENANT
    assert me["access_level"] == "Admin"


def test_login_rejects_bad_password(api_client, admin):
    resp = api_client.post("/auth/login", json={"email": admin.email, "password": "wrong"})
    assert resp.status_code == 401


def test_refresh_token_is_not_an_access_token(api_client, admin):
    tokens = api_client.post("/auth/login", json={"email": admin.email, "password": PASSWORD}).json()
    refresh_headers = {"Authorization": f"Bearer {tokens['refresh_token']}"}
    assert api_client.get("/auth/me", headers=refresh_headers).status_code == 401

    refreshed = api_client.post("/auth/refresh", params={"token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    assert api_client.post("/auth/refresh", params={"token": tokens["access_token"]}).status_code == 400


def test_signup_creates_pending_registration(api_client, db_session):
    resp = _signup(api_client)
    assert resp.status_code == 201
    assert resp.json()["status"] == "Pending"

    user = db_session.query(User).filter(User.email == "pm@downer.nz").one()
    assert user.access_level == "Client"
    assert user.tenant_id is None
    assert _signup(api_client).status_code == 409


def test_registration_review_requires_admin(api_client, tc_user):
    assert api_client.get("/clients/registrations", headers=auth_headers(tc_user)).status_code == 403


def test_approve_registration_upgrades_the_account(api_client, db_session, admin):
    registration = _signup(api_client).json()

    pending = api_client.get("/clients/registrations", headers=auth_headers(admin)).json()
    assert [r["id"] for r in pending] == [registration["id"]]

    resp = api_client.post(f"/clients/registrations/{registration['id']}/approve", headers=auth_headers(admin))
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "Approved"
    assert body["decided_by"] == str(admin.id)
    assert body["client_id"]

    user = db_session.query(User).filter(User.email == "pm@downer.nz").one()
    assert user.tenant_id == TENANT
    assert str(user.client_id) == body["client_id"]

    # Next login carries the client claims
    tokens = api_client.post("/auth/login", json={"email": "pm@downer.nz", "password": "s3cure-pass"}).json()
    me = api_client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}).json()
    assert me["tenant_id"] == TENANT

    clients = api_client.get("/clients", headers=auth_headers(admin)).json()
    assert [c["name"] for c in clients] == ["Downer Civil"]
    assert api_client.get("/clients/registrations", headers=auth_headers(admin)).json() == []


def test_decided_registrations_are_final(api_client, admin):
    registration = _signup(api_client).json()
    url = f"/clients/registrations/{registration['id']}"
    assert api_client.post(f"{url}/reject", headers=auth_headers(admin)).json()["status"] == "Rejected"
    assert api_client.post(f"{url}/approve", headers=auth_headers(admin)).status_code == 409
    assert api_client.post(f"{url}/reject", headers=auth_headers(admin)).status_code == 409

    everything = api_client.get(
        "/clients/registrations", params={"include_decided": True}, headers=auth_headers(admin)
    ).json()
    assert [r["status"] for r in everything] == ["Rejected"]


def test_super_admin_approves_into_another_tenant(api_client, db_session, super_admin, admin):
    registration = _signup(api_client).json()
    url = f"/clients/registrations/{registration['id']}/approve"

    assert api_client.post(url, json={"tenant_id": OTHER_TENANT}, headers=auth_headers(admin)).status_code == 403
    assert api_client.post(url, json={"tenant_id": "nowhere"}, headers=auth_headers(super_admin)).status_code == 404

    resp = api_client.post(url, json={"tenant_id": OTHER_TENANT}, headers=auth_headers(super_admin))
    assert resp.status_code == 200
    row = db_session.query(ClientRegistration).one()
    assert row.status == "Approved"
    user = db_session.query(User).filter(User.email == "pm@downer.nz").one()
    assert user.tenant_id == OTHER_TENANT
