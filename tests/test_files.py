import os

from conftest import auth
from aceops.core.config import settings
from aceops.services import file_service


def _upload(client, user, roles='["CRM"]', content_type="text/plain", name="notes.txt", body=b"hello world"):
    return client.post(
        "/api/files/upload",
        files={"file": (name, body, content_type)},
        data={"accessibleRoles": roles, "description": "Quarterly notes"},
        headers=auth(user),
    )


def _stored_files():
    if not os.path.isdir(settings.UPLOAD_DIR):
        return []
    return os.listdir(settings.UPLOAD_DIR)


def test_upload_and_view(client, make_user):
    crm = make_user("Crm User", roles=["CRM"])
    response = _upload(client, crm)
    assert response.status_code == 201
    stored = response.json()["file"]
    assert stored["fileSize"] == 11
    assert stored["uploadedBy"] == "Crm User"
    assert stored["accessibleRoles"] == ["CRM"]
    assert len(_stored_files()) == 1

    response = client.get(f"/api/files/view/{stored['id']}", headers=auth(crm))
    assert response.status_code == 200
    assert response.content == b"hello world"
    assert response.headers["content-disposition"] == "inline"
    assert response.headers["x-content-type-options"] == "nosniff"


def test_bad_mime_type_is_rejected_before_writing(client, staff):
    response = _upload(client, staff, content_type="application/x-msdownload", name="setup.exe")
    assert response.status_code == 400
    assert response.json()["message"].startswith("Invalid file type")
    assert _stored_files() == []


def test_invalid_roles_remove_the_written_file(client, staff, db):
    response = _upload(client, staff, roles="[]")
    assert response.status_code == 400
    assert response.json()["message"] == "At least one accessible role is required"
    assert _stored_files() == []

    response = _upload(client, staff, roles="not json")
    assert response.json()["message"] == "Invalid accessibleRoles format"

    response = _upload(client, staff, roles='["CRM", "JANITOR"]')
    assert response.json()["message"] == "Invalid roles specified"
    assert _stored_files() == []


def test_oversized_upload(client, staff, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 5)
    response = _upload(client, staff)
    assert response.status_code == 400
    assert response.json()["message"] == "File too large. Maximum size is 10MB."
    assert _stored_files() == []


def test_listing_is_filtered_by_role(client, make_user, super_admin, staff):
    crm = make_user("Crm User", roles=["CRM"])
    sales = make_user("Sales User", roles=["SALES"])
    _upload(client, crm, roles='["CRM"]', name="crm.txt")
    _upload(client, sales, roles='["SALES", "CRM"]', name="shared.txt")

    def names(user, **params):
        response = client.get("/api/files", params=params, headers=auth(user))
        return sorted(f["fileName"] for f in response.json())

    assert names(crm) == ["crm.txt", "shared.txt"]
    assert names(sales) == ["shared.txt"]
    assert names(staff) == []
    assert names(super_admin) == ["crm.txt", "shared.txt"]
    assert names(super_admin, search="SHARED") == ["shared.txt"]


def test_view_without_role_is_denied(client, make_user):
    crm = make_user("Crm User", roles=["CRM"])
    hr = make_user("Hr User", roles=["HR"])
    file_id = _upload(client, crm).json()["file"]["id"]
    assert client.get(f"/api/files/view/{file_id}", headers=auth(hr)).status_code == 403
    assert client.get(f"/api/files/url/{file_id}", headers=auth(hr)).status_code == 403

    response = client.get(f"/api/files/url/{file_id}", headers=auth(crm))
    assert response.json()["viewUrl"] == f"/api/files/view/{file_id}"


def test_documents(client, make_user, super_admin):
    author = make_user("Author", roles=["HR"])
    other = make_user("Other", roles=["HR"])
    response = client.post("/api/files/documents", json={
        "fileName": "Leave policy", "documentContent": "<h1>Leave</h1>", "accessibleRoles": ["HR"],
    }, headers=auth(author))
    assert response.status_code == 201
    doc_id = response.json()["file"]["id"]
    assert response.json()["file"]["isDocument"] is True

    response = client.get(f"/api/files/view/{doc_id}", headers=auth(other))
    assert response.text == "<h1>Leave</h1>"
    assert response.headers["cache-control"] == "no-store, no-cache, must-revalidate, private"

    body = {"documentContent": "<h1>Leave v2</h1>"}
    assert client.put(f"/api/files/documents/{doc_id}", json=body, headers=auth(other)).status_code == 403
    response = client.put(f"/api/files/documents/{doc_id}", json=body, headers=auth(author))
    assert response.json()["file"]["fileSize"] == len("<h1>Leave v2</h1>")


def test_uploaded_files_are_not_editable_documents(client, make_user):
    crm = make_user("Crm User", roles=["CRM"])
    file_id = _upload(client, crm).json()["file"]["id"]
    response = client.put(f"/api/files/documents/{file_id}", json={"fileName": "x"}, headers=auth(crm))
    assert response.json()["message"] == "Only documents can be edited"


def test_only_super_admin_deletes(client, make_user, super_admin):
    crm = make_user("Crm User", roles=["CRM"])
    file_id = _upload(client, crm).json()["file"]["id"]
    assert client.delete(f"/api/files/{file_id}", headers=auth(crm)).status_code == 403

    response = client.delete(f"/api/files/{file_id}", headers=auth(super_admin))
    assert response.json() == {"message": "File deleted successfully"}
    assert _stored_files() == []


def test_stats(client, make_user):
    crm = make_user("Crm User", roles=["CRM"])
    assert client.get("/api/files/stats", headers=auth(crm)).json() == {"totalFiles": 0, "totalSize": 0}
    _upload(client, crm)
    _upload(client, crm, body=b"abc")
    assert client.get("/api/files/stats", headers=auth(crm)).json() == {"totalFiles": 2, "totalSize": 14}


def test_upload_writes_through_the_threadpool(client, make_user, monkeypatch):
    calls = []

    async def recording(func, *args):
        calls.append(func.__name__)
        return func(*args)

    monkeypatch.setattr(file_service, "run_in_threadpool", recording)
    crm = make_user("Crm User", roles=["CRM"])
    assert _upload(client, crm).status_code == 201
    assert calls == ["open", "write", "close"]
