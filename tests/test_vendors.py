import io

from openpyxl import Workbook

from conftest import auth, run
from aceops.services.spreadsheet import XLSX_MEDIA_TYPE


def test_create_vendor_normalises_arrays(client, admin):
    response = client.post("/api/admin/vendors", json={
        "vendorName": "  Print Hub ",
        "postalCode": "110001",
        "reliability": "Non Reliable",
        "gstNumbers": [
            {"gst": "07AAACP1234A1Z5", "label": "Delhi"},
            {"gst": "29AAACP1234A1Z5", "label": "Bengaluru", "isPrimary": True},
            {"gst": "", "label": "blank"},
        ],
        "bankAccounts": [{"bankName": "HDFC", "accountNumber": 1234567890}],
    }, headers=auth(admin))
    assert response.status_code == 201
    vendor = response.json()["vendor"]
    assert vendor["vendorName"] == "Print Hub"
    assert vendor["reliability"] == "non-reliable"
    assert [g["isPrimary"] for g in vendor["gstNumbers"]] == [False, True]
    assert vendor["bankAccounts"][0]["accountNumber"] == "1234567890"
    assert vendor["bankAccounts"][0]["isPrimary"] is True


def test_legacy_fields_become_arrays(client, admin):
    response = client.post("/api/admin/vendors", json={
        "vendorName": "Old Vendor", "gst": "27AAPFU0939F1ZV", "bankName": "SBI", "ifscCode": "SBIN0000001",
    }, headers=auth(admin))
    vendor = response.json()["vendor"]
    assert vendor["gstNumbers"] == [{"gst": "27AAPFU0939F1ZV", "label": "", "isPrimary": True}]
    assert vendor["bankAccounts"][0]["ifscCode"] == "SBIN0000001"


def test_vendor_validation(client, admin):
    assert client.post("/api/admin/vendors", json={"vendorName": " "}, headers=auth(admin)).status_code == 400
    response = client.post("/api/admin/vendors", json={"vendorName": "X", "postalCode": "12"}, headers=auth(admin))
    assert response.json()["message"] == "Postal code must be 6 digits"


def test_soft_and_hard_delete(client, admin, db):
    vendor_id = client.post("/api/admin/vendors", json={"vendorName": "Temp"}, headers=auth(admin)).json()["vendor"]["_id"]

    response = client.delete(f"/api/admin/vendors/{vendor_id}", headers=auth(admin))
    assert response.json() == {"message": "Soft deleted successfully"}
    assert client.get("/api/admin/vendors", headers=auth(admin)).json() == []
    assert run(db.vendors.count_documents({})) == 1

    response = client.delete(f"/api/admin/vendors/{vendor_id}", params={"hard": True}, headers=auth(admin))
    assert response.json() == {"message": "Permanently deleted"}
    assert run(db.vendors.count_documents({})) == 0


def test_update_logs_changes(client, admin):
    vendor_id = client.post("/api/admin/vendors", json={"vendorName": "Temp"}, headers=auth(admin)).json()["vendor"]["_id"]
    response = client.put(
        f"/api/admin/vendors/{vendor_id}", json={"vendorName": "Temp", "location": "Delhi"}, headers=auth(admin)
    )
    vendor = response.json()["vendor"]
    assert vendor["location"] == "Delhi"
    assert [entry["field"] for entry in vendor["logs"] if entry["action"] == "update"] == ["location"]


def test_upload_vendors_sheet(client, admin, db):
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["vendorName", "location", "gst", "reliability", "clients"])
    sheet.append(["Sheet Vendor", "Pune", "27AAPFU0939F1ZV", "Reliable",
                  '[{"name": "Asha", "contactNumber": 9811111111}]'])
    sheet.append([None, None, None, None, None])
    buffer = io.BytesIO()
    workbook.save(buffer)

    response = client.post(
        "/api/admin/upload-vendors",
        files={"file": ("vendors.xlsx", buffer.getvalue(), XLSX_MEDIA_TYPE)},
        headers=auth(admin),
    )
    assert response.status_code == 201
    vendors = response.json()["vendors"]
    assert len(vendors) == 1
    assert vendors[0]["gstNumbers"][0]["gst"] == "27AAPFU0939F1ZV"
    assert vendors[0]["clients"][0]["contactNumber"] == "9811111111"
    assert run(db.vendors.count_documents({"deleted": False})) == 1
