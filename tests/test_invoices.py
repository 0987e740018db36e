from datetime import datetime

import pytest

from conftest import auth, run
from aceops.core.exceptions import ValidationError
from aceops.services import invoice_service


def _quotation(db, **overrides):
    quotation = {
        "quotationNumber": "Q-1042",
        "customerCompany": "Globex Pvt Ltd",
        "customerName": "Ravi",
        "customerAddress": "12 MG Road, Bengaluru, 560001",
        "gst": 18,
        "items": [
            {"slNo": 1, "product": "Printed mug", "hsnCode": "6912", "quantity": 100, "rate": 120,
             "amount": 12000, "total": 14160},
            {"slNo": 2, "product": "Notebook", "hsnCode": "4820", "quantity": 50, "rate": 90,
             "amount": 4500, "productGST": 12, "total": 5040},
        ],
        "createdAt": datetime(2026, 5, 2, 6, 0),
    }
    quotation.update(overrides)
    run(db.quotations.insert_one(quotation))
    return quotation


def test_format_invoice_number():
    assert invoice_service.format_invoice_number("APP/{FY}/{SEQ4}", "26-27", 7) == "APP/26-27/0007"
    assert invoice_service.format_invoice_number("{SEQ2}-{FY}", "25-26", 123) == "123-25-26"
    assert invoice_service.format_invoice_number("INV-{FY}", "25-26", 5) == "INV-25-26"


def test_counter_is_per_financial_year(db):
    april = datetime(2026, 4, 10)
    march = datetime(2026, 3, 10)
    assert run(invoice_service.next_invoice_number("INV/{FY}/{SEQ3}", april)) == "INV/26-27/001"
    assert run(invoice_service.next_invoice_number("INV/{FY}/{SEQ3}", april)) == "INV/26-27/002"
    assert run(invoice_service.next_invoice_number("INV/{FY}/{SEQ3}", march)) == "INV/25-26/001"


def test_line_items_split_gst():
    quotation = {"gst": 18, "items": [{"hsnCode": "6912", "amount": 1000, "quantity": 10, "total": 1180}]}
    item = invoice_service.build_line_items(quotation, {})[0]
    assert item["slNo"] == 1
    assert item["cgstAmount"] == 90.0
    assert item["sgstPercent"] == 9.0
    assert item["unit"] == "NOS"


def test_missing_hsn_is_rejected():
    quotation = {"items": [{"slNo": 3, "amount": 10}]}
    with pytest.raises(ValidationError) as excinfo:
        invoice_service.build_line_items(quotation, {})
    assert excinfo.value.message == "HSN code missing for item #3"


def test_create_from_quotation(client, admin, db):
    quotation = _quotation(db)
    run(db.job_sheets.insert_one({"referenceQuotation": "Q-1042", "jobSheetNumber": "JS-77", "createdAt": datetime.utcnow()}))

    response = client.post(
        f"/api/admin/invoices/from-quotation/{quotation['_id']}",
        json={"format": "ACE/{FY}/{SEQ3}"},
        headers=auth(admin),
    )
    assert response.status_code == 201
    invoice = response.json()["invoice"]
    details = invoice["invoiceDetails"]
    assert details["invoiceNumber"].startswith("ACE/")
    assert details["invoiceNumber"].endswith("/001")
    assert details["refJobSheetNumber"] == "JS-77"
    assert details["quotationRefNumber"] == "Q-1042"
    assert invoice["subtotalTaxable"] == 16500.0
    assert invoice["totalCgst"] == 1350.0
    assert invoice["items"][1]["cgstPercent"] == 6.0
    assert invoice["grandTotal"] == 19200.0
    assert invoice["createdBy"] == admin["email"]


def test_create_without_body_uses_default_format(client, admin, db):
    quotation = _quotation(db)
    response = client.post(f"/api/admin/invoices/from-quotation/{quotation['_id']}", headers=auth(admin))
    assert response.json()["invoice"]["invoiceDetails"]["invoiceNumber"].startswith("APP/")


def test_quotation_product_hsn_fallback(client, admin, db):
    product = {"name": "Pen", "hsnCode": "9608"}
    run(db.products.insert_one(product))
    quotation = _quotation(db, items=[{"product": "Pen", "productId": str(product["_id"]), "amount": 100, "total": 118}])
    response = client.post(f"/api/admin/invoices/from-quotation/{quotation['_id']}", headers=auth(admin))
    assert response.json()["invoice"]["items"][0]["hsnCode"] == "9608"


def test_unknown_quotation(client, admin):
    response = client.post(f"/api/admin/invoices/from-quotation/{'a' * 24}", headers=auth(admin))
    assert response.status_code == 404
    assert response.json()["message"] == "Quotation not found"


def test_list_filters_and_pagination(client, admin, db):
    for number, company, total in (("A/1", "Globex", 500), ("A/2", "Initech", 1500), ("A/3", "Globex Two", 2500)):
        run(db.invoices.insert_one({
            "clientCompanyName": company,
            "grandTotal": total,
            "invoiceDetails": {"invoiceNumber": number, "date": datetime(2026, 6, 1)},
            "createdAt": datetime.utcnow(),
        }))

    response = client.get("/api/admin/invoices", params={"clientCompanyName": "globex"}, headers=auth(admin))
    assert response.json()["totalInvoices"] == 2

    response = client.get("/api/admin/invoices", params={"grandMin": 1000, "grandMax": 2000}, headers=auth(admin))
    assert [i["invoiceDetails"]["invoiceNumber"] for i in response.json()["invoices"]] == ["A/2"]

    response = client.get("/api/admin/invoices", params={"limit": 2, "page": 2}, headers=auth(admin))
    body = response.json()
    assert body["totalPages"] == 2
    assert body["currentPage"] == 2
    assert len(body["invoices"]) == 1

    response = client.get("/api/admin/invoices", params={"dateFrom": "yesterday"}, headers=auth(admin))
    assert response.status_code == 400


def test_update_invoice_details(client, admin, db):
    invoice = {"invoiceDetails": {"invoiceNumber": "A/1", "refJobSheetNumber": "JS-1", "discount": 0}}
    run(db.invoices.insert_one(invoice))

    response = client.put(f"/api/admin/invoices/{invoice['_id']}", json={
        "shipTo": "Warehouse 4",
        "invoiceDetails": {"refJobSheetNumber": " ", "discount": "12.5", "poNumber": "PO-9"},
    }, headers=auth(admin))
    assert response.status_code == 200
    updated = response.json()["invoice"]
    assert updated["shipTo"] == "Warehouse 4"
    assert updated["invoiceDetails"]["refJobSheetNumber"] is None
    assert updated["invoiceDetails"]["discount"] == 12.5
    assert updated["invoiceDetails"]["poNumber"] == "PO-9"
    assert updated["invoiceDetails"]["invoiceNumber"] == "A/1"


def test_invoices_are_admin_only(client, staff):
    assert client.get("/api/admin/invoices", headers=auth(staff)).status_code == 403


def test_date_filters_use_ist_calendar_days(client, admin, db):
    # 17:30 IST on 10 March, and 01:30 IST on 11 March
    for number, when in (("D/1", datetime(2026, 3, 10, 12, 0)), ("D/2", datetime(2026, 3, 10, 20, 0))):
        run(db.invoices.insert_one({
            "invoiceDetails": {"invoiceNumber": number, "date": when},
            "createdAt": when,
        }))

    def numbers(**params):
        response = client.get("/api/admin/invoices", params=params, headers=auth(admin))
        return [i["invoiceDetails"]["invoiceNumber"] for i in response.json()["invoices"]]

    assert numbers(dateTo="2026-03-10") == ["D/1"]
    assert numbers(dateFrom="2026-03-11") == ["D/2"]
    assert sorted(numbers(dateFrom="2026-03-10", dateTo="2026-03-11")) == ["D/1", "D/2"]
