import json
from datetime import datetime

import httpx
import pytest

from conftest import auth, run
from aceops.services.whitebooks_client import (
    AUTHENTICATE_PATH,
    GENERATE_EWAYBILL_PATH,
    GENERATE_IRN_PATH,
    GSTN_DETAILS_PATH,
    WhitebooksClient,
    set_whitebooks_client,
)

SEZ_REJECTION = json.dumps([
    {"ErrorCode": "3028", "ErrorMessage": "Recepient cannot be SEZ for - B2B transaction"}
])


class FakeWhitebooks:
    """Answers Whitebooks calls by path; individual responses can be overridden per test."""

    def __init__(self):
        self.calls = []
        self.gstn = {"status_cd": "1", "data": {
            "Gstin": "29AAACG1234A1Z5", "LegalName": "GLOBEX PRIVATE LIMITED", "TradeName": "GLOBEX",
            "AddrBno": "12", "AddrBnm": "Tech Park", "AddrFlno": "", "AddrSt": "MG Road",
            "AddrLoc": "Bengaluru", "AddrPncd": 560001, "StateCode": 29, "TaxpayerType": "Regular",
        }}
        self.irn_responses = [{"status_cd": "1", "data": {
            "Irn": "a" * 64, "AckNo": 112210000001, "AckDt": "2026-06-01 10:00:00",
            "SignedInvoice": "signed", "SignedQRCode": "qr", "Status": "ACT",
        }}]
        self.ewaybill = {"status_cd": "1", "data": {"EwbNo": 331001234567, "EwbDt": "2026-06-01 11:00:00"}}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.calls.append((path, body, dict(request.headers)))
        if path.endswith(AUTHENTICATE_PATH):
            return httpx.Response(200, json={"status_cd": "Sucess", "data": {
                "AuthToken": "tok-123", "Sek": "sek", "ClientId": "cid", "TokenExpiry": "2026-06-01 18:00:00",
            }})
        if path.endswith(GSTN_DETAILS_PATH):
            return httpx.Response(200, json=self.gstn)
        if path.endswith(GENERATE_IRN_PATH):
            response = self.irn_responses.pop(0) if len(self.irn_responses) > 1 else self.irn_responses[0]
            return httpx.Response(200, json=response)
        if path.endswith(GENERATE_EWAYBILL_PATH):
            return httpx.Response(200, json=self.ewaybill)
        return httpx.Response(404, json={"status_desc": "unknown path"})

    def paths(self):
        return [path for path, _, _ in self.calls]


@pytest.fixture
def whitebooks():
    fake = FakeWhitebooks()
    set_whitebooks_client(WhitebooksClient(transport=httpx.MockTransport(fake)))
    yield fake
    set_whitebooks_client(None)


@pytest.fixture
def invoice(db):
    run(db.companies.insert_one({
        "companyName": "Globex Pvt Ltd",
        "GSTIN": "29AAACG1234A1Z5",
        "companyAddress": "12 MG Road\nBengaluru\n560001",
        "pincode": "560001",
        "clients": [{"name": "Ravi", "contactNumber": "9876543210", "email": "ravi@globex.in"}],
        "deleted": False,
    }))
    doc = {
        "clientCompanyName": "Globex",
        "billTo": "12 MG Road, Bengaluru, 560001",
        "items": [{
            "slNo": 1, "description": "Printed mug", "hsnCode": "6912", "quantity": 100, "rate": 120,
            "taxableAmount": 12000, "cgstPercent": 9, "sgstPercent": 9, "cgstAmount": 1080,
            "sgstAmount": 1080, "totalAmount": 14160,
        }],
        "invoiceDetails": {"invoiceNumber": "APP/26-27/0001", "date": datetime(2026, 5, 31, 20, 0)},
        "createdAt": datetime(2026, 5, 31, 20, 0),
    }
    run(db.invoices.insert_one(doc))
    return doc


def _url(invoice, step):
    return f"/api/admin/invoices/{invoice['_id']}/einvoice/{step}"


def test_full_flow(client, admin, invoice, whitebooks, db):
    headers = auth(admin)

    response = client.post(_url(invoice, "authenticate"), headers=headers)
    assert response.status_code == 200
    assert response.json()["eInvoice"]["authToken"] == "tok-123"

    response = client.get(_url(invoice, "customer"), headers=headers)
    body = response.json()
    assert body["source"] == "wb"
    assert body["customerDetails"]["address1"] == "12 Tech Park"
    assert body["customerDetails"]["isSEZ"] is False

    response = client.post(_url(invoice, "reference"), json={"invRemark": "June supply"}, headers=headers)
    reference = response.json()["referenceJson"]
    assert reference["TranDtls"]["SupTyp"] == "B2B"
    # 20:00 UTC on 31 May is 1 June in India
    assert reference["DocDtls"] == {"Typ": "INV", "No": "APP/26-27/0001", "Dt": "01/06/2026"}
    assert reference["BuyerDtls"]["Pin"] == 560001
    assert reference["ItemList"][0]["CgstAmt"] == 1080.0
    assert reference["ValDtls"]["TotInvVal"] == 14160.0
    assert reference["RefDtls"]["InvRm"] == "June supply"

    response = client.post(_url(invoice, "generate"), headers=headers)
    assert response.status_code == 200
    assert response.json()["eInvoice"]["irn"] == "a" * 64

    response = client.post(_url(invoice, "ewaybill/generate"), json={
        "TransDocNo": "LR-99", "VehNo": "KA01AB1234", "Distance": 12,
    }, headers=headers)
    assert response.status_code == 200
    payload = response.json()["payload"]
    assert payload["ExpShipDtls"]["Loc"] == "Bengaluru"
    assert payload["DispDtls"]["Nm"] == "ACE PRINT PACK"
    assert response.json()["invoice"]["invoiceDetails"]["eWayBillNumber"] == "331001234567"

    auth_headers = whitebooks.calls[0][2]
    assert "password" in auth_headers
    irn_headers = [h for path, _, h in whitebooks.calls if path.endswith(GENERATE_IRN_PATH)][0]
    assert irn_headers["auth-token"] == "tok-123"


def test_steps_require_authentication(client, admin, invoice, whitebooks):
    response = client.get(_url(invoice, "customer"), headers=auth(admin))
    assert response.status_code == 400
    assert response.json()["message"] == "E-Invoice not initiated (authenticate first)"

    response = client.post(_url(invoice, "generate"), headers=auth(admin))
    assert response.json()["message"] == "E-Invoice not initiated"


def test_gstn_failure_falls_back_to_local_company(client, admin, invoice, whitebooks):
    whitebooks.gstn = {"status_cd": "0", "status_desc": "Invalid GSTIN"}
    client.post(_url(invoice, "authenticate"), headers=auth(admin))

    body = client.get(_url(invoice, "customer"), headers=auth(admin)).json()
    assert body["source"] == "local"
    assert body["customerDetails"]["legalName"] == "Globex Pvt Ltd"
    assert body["customerDetails"]["location"] == "Bengaluru"
    assert body["customerDetails"]["isSEZ"] is False


def test_gstn_sez_flag_sets_supply_type(client, admin, invoice, whitebooks):
    whitebooks.gstn["data"]["TaxpayerType"] = "SEZ Unit"
    client.post(_url(invoice, "authenticate"), headers=auth(admin))
    client.get(_url(invoice, "customer"), headers=auth(admin))

    response = client.post(_url(invoice, "reference"), json={"supTyp": "SEZWOP"}, headers=auth(admin))
    reference = response.json()["referenceJson"]
    assert reference["TranDtls"]["SupTyp"] == "SEZWOP"
    assert reference["ItemList"][0]["IgstAmt"] == 2160.0
    assert reference["ItemList"][0]["CgstAmt"] == 0.0


def test_sez_rejection_is_retried_as_sezwp(client, admin, invoice, whitebooks):
    whitebooks.irn_responses.insert(0, {"status_cd": "0", "status_desc": SEZ_REJECTION})
    client.post(_url(invoice, "authenticate"), headers=auth(admin))
    client.get(_url(invoice, "customer"), headers=auth(admin))
    client.post(_url(invoice, "reference"), headers=auth(admin))

    response = client.post(_url(invoice, "generate"), headers=auth(admin))
    assert response.status_code == 200

    irn_bodies = [body for path, body, _ in whitebooks.calls if path.endswith(GENERATE_IRN_PATH)]
    assert [b["TranDtls"]["SupTyp"] for b in irn_bodies] == ["B2B", "SEZWP"]
    assert response.json()["eInvoice"]["referenceJson"]["TranDtls"]["SupTyp"] == "SEZWP"


def test_irn_business_failure(client, admin, invoice, whitebooks):
    whitebooks.irn_responses = [{"status_cd": "0", "status_desc": '[{"ErrorCode": "2150", "ErrorMessage": "Duplicate IRN"}]'}]
    client.post(_url(invoice, "authenticate"), headers=auth(admin))
    client.get(_url(invoice, "customer"), headers=auth(admin))
    client.post(_url(invoice, "reference"), headers=auth(admin))

    response = client.post(_url(invoice, "generate"), headers=auth(admin))
    assert response.status_code == 400
    assert response.json()["message"] == "IRN generation failed"
    assert response.json()["details"] == {"status_desc": "Duplicate IRN"}


def test_incomplete_buyer_is_reported(client, admin, db, whitebooks):
    run(db.companies.insert_one({"companyName": "Nowhere Ltd", "GSTIN": "29AAACN1234A1Z5", "deleted": False}))
    invoice = {"clientCompanyName": "Nowhere", "items": [], "invoiceDetails": {}}
    run(db.invoices.insert_one(invoice))
    client.post(_url(invoice, "authenticate"), headers=auth(admin))

    response = client.post(_url(invoice, "reference"), headers=auth(admin))
    assert response.status_code == 400
    missing = response.json()["details"]["missing"]
    assert missing["gstin"] is False
    assert missing["pincode"] is True


def test_ewaybill_requires_transport_details(client, admin, invoice, whitebooks):
    client.post(_url(invoice, "authenticate"), headers=auth(admin))
    response = client.post(_url(invoice, "ewaybill/generate"), json={"VehNo": "KA01"}, headers=auth(admin))
    assert response.json()["message"] == "IRN not generated for this invoice"

    client.get(_url(invoice, "customer"), headers=auth(admin))
    client.post(_url(invoice, "reference"), headers=auth(admin))
    client.post(_url(invoice, "generate"), headers=auth(admin))
    response = client.post(_url(invoice, "ewaybill/generate"), json={"VehNo": "KA01"}, headers=auth(admin))
    assert response.json()["message"] == "TransDocNo is required"


def test_cancel_allows_a_fresh_record(client, admin, invoice, whitebooks, db):
    client.post(_url(invoice, "authenticate"), headers=auth(admin))
    response = client.put(_url(invoice, "cancel"), headers=auth(admin))
    assert response.json()["eInvoice"]["status"] == "CANCELLED"
    assert client.put(_url(invoice, "cancel"), headers=auth(admin)).status_code == 404

    client.post(_url(invoice, "authenticate"), headers=auth(admin))
    records = client.get("/api/admin/einvoices", headers=auth(admin)).json()
    assert sorted(r["cancelled"] for r in records) == [False, True]

    record = client.get(f"/api/admin/einvoices/{records[0]['_id']}", headers=auth(admin)).json()
    assert record["invoiceId"] == str(invoice["_id"])


def test_provider_outage_is_external_error(client, admin, invoice):
    def down(request):
        raise httpx.ConnectError("connection refused")

    set_whitebooks_client(WhitebooksClient(transport=httpx.MockTransport(down)))
    try:
        response = client.post(_url(invoice, "authenticate"), headers=auth(admin))
    finally:
        set_whitebooks_client(None)
    assert response.status_code == 502
    assert response.json()["code"] == "EXTERNAL_SERVICE_ERROR"


def test_sez_address_sets_supply_type_without_gstn(client, admin, db, whitebooks):
    run(db.companies.insert_one({
        "companyName": "Zenith Exports",
        "GSTIN": "29AAACZ1234A1Z5",
        "companyAddress": "Plot 4, Electronic City SEZ\nBengaluru\n560100",
        "deleted": False,
    }))
    invoice = {
        "clientCompanyName": "Zenith",
        "items": [{"slNo": 1, "description": "Printed mug", "hsnCode": "6912", "quantity": 100, "rate": 120,
                   "taxableAmount": 12000, "cgstPercent": 9, "sgstPercent": 9}],
        "invoiceDetails": {"invoiceNumber": "APP/26-27/0002", "date": datetime(2026, 6, 2)},
    }
    run(db.invoices.insert_one(invoice))
    whitebooks.gstn = {"status_cd": "0", "status_desc": "GSTN unavailable"}
    client.post(_url(invoice, "authenticate"), headers=auth(admin))
    customer = client.get(_url(invoice, "customer"), headers=auth(admin)).json()
    assert customer["source"] == "local"
    assert customer["customerDetails"]["isSEZ"] is False

    reference = client.post(_url(invoice, "reference"), headers=auth(admin)).json()["referenceJson"]
    assert reference["TranDtls"]["SupTyp"] == "SEZWP"

    reference = client.post(_url(invoice, "reference"), json={"supTyp": "SEZWOP"}, headers=auth(admin)).json()["referenceJson"]
    assert reference["TranDtls"]["SupTyp"] == "SEZWOP"
    assert reference["ItemList"][0]["IgstAmt"] == 2160.0
    assert reference["ValDtls"]["CgstVal"] == 0.0
    assert reference["ValDtls"]["SgstVal"] == 0.0


def test_stored_b2b_reference_for_sez_buyer_is_posted_as_sezwp(client, admin, invoice, whitebooks, db):
    run(db.einvoices.insert_one({
        "invoiceId": invoice["_id"],
        "cancelled": False,
        "authToken": "tok-123",
        "referenceJson": {
            "TranDtls": {"TaxSch": "GST", "SupTyp": "B2B"},
            "BuyerDtls": {"LglNm": "Globex", "Addr1": "Unit 7, Mahindra World City SEZ", "Loc": "Chennai"},
            "ItemList": [],
        },
    }))

    response = client.post(_url(invoice, "generate"), headers=auth(admin))
    assert response.status_code == 200

    irn_bodies = [body for path, body, _ in whitebooks.calls if path.endswith(GENERATE_IRN_PATH)]
    assert [b["TranDtls"]["SupTyp"] for b in irn_bodies] == ["SEZWP"]
    stored = run(db.einvoices.find_one({"invoiceId": invoice["_id"]}))
    assert stored["referenceJson"]["TranDtls"]["SupTyp"] == "SEZWP"
