from conftest import NOW, auth_headers, days_from_now


def test_create_staff_with_credentials(api_client, admin):
    payload = {
        "name": "Aroha Ngata",
        "email": "aroha@trafficflow.nz",
        "role": "STMS",
        "emergency_contact": {"name": "Hemi", "phone": "021 555 0101"},
        "certifications": [{"name": "Level 1", "expiry_date": days_from_now(10).isoformat()}],
        "licenses": [{"name": "Class 2", "expiry_date": days_from_now(200).isoformat()}],
    }
    resp = api_client.post("/staff", json=payload, headers=auth_headers(admin))
    assert resp.status_code == 201
    body = resp.json()
    assert body["role"] == "STMS"
    assert [c["name"] for c in body["certifications"]] == ["Level 1"]
    assert [c["name"] for c in body["licenses"]] == ["Class 2"]


def test_staff_members_cannot_create_staff(api_client, tc_user):
    resp = api_client.post("/staff", json={"name": "Nope"}, headers=auth_headers(tc_user))
    assert resp.status_code == 403


def test_replacing_certifications_keeps_licenses(api_client, admin, make_staff):
    member = make_staff(
        certifications=[("Level 1", days_from_now(10)), ("TTMW", None)],
        licenses=[("Class 2", days_from_now(100))],
    )
    resp = api_client.put(
        f"/staff/{member.id}/certifications",
        json=[{"name": "Level 2", "expiry_date": days_from_now(300).isoformat()}],
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert [c["name"] for c in body["certifications"]] == ["Level 2"]
    assert [c["name"] for c in body["licenses"]] == ["Class 2"]


def test_credentials_expiry_board(api_client, tc_user, make_staff):
    make_staff(
        name="Aroha",
        certifications=[("Level 1", days_from_now(12)), ("TTMW", days_from_now(-50)), ("Level 2", days_from_now(400))],
        licenses=[("Class 2", days_from_now(-3))],
    )
    make_staff(name="Hemi", licenses=[("Class 4", days_from_now(60))])

    rows = api_client.get("/staff/credentials/expiry", headers=auth_headers(tc_user)).json()
    assert [(r["staff_name"], r["name"], r["label"], r["variant"]) for r in rows] == [
        ("Aroha", "Class 2", "Expired", "destructive"),
        ("Aroha", "Level 1", "Expires in 12d", "warning"),
        ("Hemi", "Class 4", "Valid", "success"),
    ]
    assert rows[0]["days_until_expiry"] == -3
    assert [r["expires_on"] for r in rows[:2]] == ["Expired", "13 Mar 2024"]


def test_credentials_expiry_board_window_excludes_its_last_day(api_client, tc_user, make_staff):
    make_staff(certifications=[("Level 1", days_from_now(89)), ("Level 2", days_from_now(90))])

    rows = api_client.get("/staff/credentials/expiry", headers=auth_headers(tc_user)).json()
    assert [(r["name"], r["days_until_expiry"]) for r in rows] == [("Level 1", 89)]


def test_truck_board_health(api_client, admin, make_truck):
    make_truck(name="A", plate="AAA111", current_kms=10000, next_service_kms=15000, next_service_date=days_from_now(60))
    make_truck(name="B", plate="BBB222", current_kms=10000, next_service_kms=10800)
    make_truck(name="C", plate="CCC333", status="In Service")

    rows = api_client.get("/fleet/trucks", headers=auth_headers(admin)).json()
    assert [(r["name"], r["health"]) for r in rows] == [("A", "success"), ("B", "warning"), ("C", "destructive")]
    assert rows[1]["kms_until_service"] == 800
    assert rows[0]["days_until_service"] == 60
    assert rows[0]["service_due"] == "30 Apr 2024 or 15,000 km"
    assert rows[2]["service_due"] is None


def test_create_truck_uppercases_plate(api_client, admin, tc_user):
    payload = {"name": "Truck 9", "plate": "xyz987", "current_kms": 42000}
    assert api_client.post("/fleet/trucks", json=payload, headers=auth_headers(tc_user)).status_code == 403
    resp = api_client.post("/fleet/trucks", json=payload, headers=auth_headers(admin))
    assert resp.status_code == 201
    assert resp.json()["plate"] == "XYZ987"


def test_odometer_and_service_record(api_client, tc_user, make_truck):
    truck = make_truck(current_kms=50000, next_service_kms=50300, status="In Service")
    headers = auth_headers(tc_user)

    resp = api_client.put(f"/fleet/trucks/{truck.id}/odometer", json={"current_kms": 49000}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["current_kms"] == 49000

    resp = api_client.post(
        f"/fleet/trucks/{truck.id}/service",
        json={
            "service_date": NOW.isoformat(),
            "next_service_date": days_from_now(180).isoformat(),
            "next_service_kms": 59000,
        },
        headers=headers,
    )
    body = resp.json()
    assert body["status"] == "Operational"
    assert body["service"]["next_service_kms"] == 59000
    assert body["kms_until_service"] == 10000
    assert body["health"] == "success"


def test_trucks_are_tenant_scoped(api_client, other_admin, make_truck):
    truck = make_truck()
    assert api_client.get("/fleet/trucks", headers=auth_headers(other_admin)).json() == []
    assert api_client.get(f"/fleet/trucks/{truck.id}", headers=auth_headers(other_admin)).status_code == 404


def test_fuel_entries_are_appended(api_client, tc_user, make_truck):
    truck = make_truck()
    headers = auth_headers(tc_user)
    url = f"/fleet/trucks/{truck.id}/fuel"

    first = api_client.post(url, json={"date": "2024-02-28", "volume_liters": 62.5, "cost": 171.9}, headers=headers)
    assert first.status_code == 201
    api_client.post(url, json={"date": "2024-03-01", "volume_liters": 40, "cost": 110}, headers=headers)

    body = api_client.get(f"/fleet/trucks/{truck.id}", headers=headers).json()
    assert [e["date"] for e in body["fuel_log"]] == ["2024-02-28", "2024-03-01"]
    assert body["fuel_log"][0]["volume_liters"] == 62.5

    bad = api_client.post(url, json={"date": "2024-03-01", "volume_liters": 0, "cost": 10}, headers=headers)
    assert bad.status_code == 422
