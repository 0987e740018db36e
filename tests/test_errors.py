from fastapi.testclient import TestClient
from aceops.main import app

client = TestClient(app)


def test_404_not_found():
    response = client.get("/non-existent-route")
    assert response.status_code == 404
    data = response.json()
    assert "message" in data
    assert data["code"] == "HTTP_ERROR"


def test_validation_error_structure():
    # Temporary route to exercise request validation
    from pydantic import BaseModel

    class Item(BaseModel):
        name: str
        price: int

    @app.post("/test-validation")
    def create_item(item: Item):
        return item

    response = client.post("/test-validation", json={"name": "foo", "price": "invalid"})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert data["message"] == "Input validation failed"
    assert len(data["details"]) > 0


def test_custom_exception():
    from aceops.core.exceptions import NotFoundError

    @app.get("/test-custom-error")
    def trigger_custom_error():
        raise NotFoundError(message="Item not found")

    response = client.get("/test-custom-error")
    assert response.status_code == 404
    data = response.json()
    assert data["code"] == "NOT_FOUND"
    assert data["message"] == "Item not found"


def test_einvoice_failure_carries_status_desc():
    from aceops.core.exceptions import EInvoiceError

    @app.get("/test-einvoice-error")
    def trigger_einvoice_error():
        raise EInvoiceError("IRN generation failed", status_desc="Duplicate IRN")

    response = client.get("/test-einvoice-error")
    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "EINVOICE_FAILED"
    assert data["details"] == {"status_desc": "Duplicate IRN"}


def test_missing_token_is_401():
    response = client.get("/api/user")
    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_FAILED"


def test_liveness():
    assert client.get("/live").json() == {"status": "alive"}
