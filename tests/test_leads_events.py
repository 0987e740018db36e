from conftest import auth, run


def _lead(client, user, name="Umbrella Corp", assignee=None):
    contact = {"clientName": "Kiran", "mobile": "9811122233", "location": "Chennai"}
    if assignee is not None:
        contact["assignedTo"] = str(assignee["_id"])
    return client.post(
        "/api/admin/potential-clients",
        json={"companyName": name, "contacts": [contact]},
        headers=auth(user),
    )


def test_lead_names_are_unique(client, admin):
    assert _lead(client, admin).status_code == 201
    response = _lead(client, admin, name="umbrella corp")
    assert response.status_code == 400
    assert response.json()["message"] == "Potential client already exists"


def test_lead_scopes(client, admin, super_admin):
    _lead(client, admin, "Mine")
    _lead(client, super_admin, "Handed Over", assignee=admin)
    _lead(client, super_admin, "Not Mine")

    def names(scope):
        response = client.get("/api/admin/potential-clients", params={"filter": scope}, headers=auth(admin))
        return sorted(lead["companyName"] for lead in response.json())

    assert names("my") == ["Mine"]
    assert names("team") == ["Handed Over"]
    assert names("all") == ["Handed Over", "Mine", "Not Mine"]


def test_lead_search_covers_contacts(client, admin):
    _lead(client, admin, "Acme")
    response = client.get(
        "/api/admin/potential-clients", params={"searchTerm": "chenn"}, headers=auth(admin)
    )
    leads = response.json()
    assert [lead["companyName"] for lead in leads] == ["Acme"]
    assert leads[0]["createdBy"]["name"] == "Admin"


def test_lead_update_and_delete(client, admin, db):
    lead_id = _lead(client, admin).json()["potentialClient"]["_id"]
    response = client.put(
        f"/api/admin/potential-clients/{lead_id}", json={"companyName": "Umbrella Ltd"}, headers=auth(admin)
    )
    assert response.json()["potentialClient"]["companyName"] == "Umbrella Ltd"
    assert response.json()["logs"][0]["field"] == "companyName"

    assert client.delete(f"/api/admin/potential-clients/{lead_id}", headers=auth(admin)).json() == {"message": "Deleted"}
    assert run(db.potential_clients.count_documents({})) == 0


def test_event_resolves_company_by_type(client, admin, staff):
    vendor = client.post("/api/admin/vendors", json={"vendorName": "Ink Supplies"}, headers=auth(admin)).json()["vendor"]
    response = client.post("/api/admin/events", json={
        "company": vendor["_id"],
        "companyType": "Vendor",
        "schedules": [{"action": "Call", "assignedTo": str(staff["_id"]), "remarks": ""}],
    }, headers=auth(admin))
    assert response.status_code == 201
    event = response.json()["event"]
    assert event["companyName"] == "Ink Supplies"
    assert event["schedules"] == [{"action": "Call", "assignedTo": str(staff["_id"])}]


def test_event_for_potential_client(client, admin):
    lead_id = _lead(client, admin).json()["potentialClient"]["_id"]
    client.post("/api/admin/events", json={"potentialClient": lead_id}, headers=auth(admin))

    events = client.get("/api/admin/events", headers=auth(admin)).json()
    assert events[0]["companyType"] == "PotentialClient"
    assert events[0]["potentialClient"] == {"_id": lead_id, "companyName": "Umbrella Corp"}


def test_event_errors(client, admin):
    response = client.post("/api/admin/events", json={"company": "0" * 24}, headers=auth(admin))
    assert response.status_code == 400

    response = client.post(
        "/api/admin/events", json={"company": "0" * 24, "companyType": "Company"}, headers=auth(admin)
    )
    assert response.status_code == 404


def test_event_team_scope_and_update(client, admin, super_admin):
    response = client.post("/api/admin/events", json={
        "schedules": [{"action": "Meet", "assignedTo": str(admin["_id"])}],
    }, headers=auth(super_admin))
    event_id = response.json()["event"]["_id"]

    team = client.get("/api/admin/events", params={"filter": "team"}, headers=auth(admin)).json()
    assert [e["_id"] for e in team] == [event_id]
    assert client.get("/api/admin/events", headers=auth(admin)).json() == []

    response = client.put(
        f"/api/admin/events/{event_id}", json={"schedules": [{"action": "Mail", "status": "Done"}]}, headers=auth(admin)
    )
    assert response.json()["event"]["schedules"] == [{"action": "Mail", "status": "Done"}]
    assert response.json()["event"]["logs"][-1]["field"] == "schedules"
