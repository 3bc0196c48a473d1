import pytest
from fastapi.testclient import TestClient

import api_server
from conftest import FakeAdvisory, FakeSource
from safescan import AdvisoryOk, ClassificationOrchestrator, HistoryStore, Status
from safescan.relay import OpenAIAdvisor


@pytest.fixture
def client(source):
    orchestrator = ClassificationOrchestrator(
        source,
        advisory=FakeAdvisory(AdvisoryOk(status=Status.AVOID, notes=("advisory says no",))),
        history=HistoryStore(),
    )
    api_server.app.dependency_overrides[api_server.get_orchestrator] = lambda: orchestrator
    api_server.app.dependency_overrides[api_server.get_advisor] = lambda: OpenAIAdvisor(None)
    yield TestClient(api_server.app)
    api_server.app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/ping").json()["ok"] is True


def test_classify_avoid(client):
    response = client.post("/classify", json={"code": "111"})
    assert response.status_code == 200
    body = response.json()
    assert body["verdict"]["status"] == "avoid"
    assert body["product"]["brand"] == "Choco"
    assert body["advisory_consulted"] is False


def test_classify_maybe_is_refined_by_advisory(client):
    body = client.post("/classify", json={"code": "333", "lang": "en"}).json()
    assert body["verdict"]["status"] == "avoid"
    assert body["verdict"]["notes"][-1] == "advisory says no"
    assert body["advisory_consulted"] is True


def test_classify_not_found(client):
    response = client.post("/classify", json={"code": "000"})
    assert response.status_code == 404
    assert response.json()["detail"].startswith("Product not found")


def test_classify_blank_code(client):
    assert client.post("/classify", json={"code": "  "}).status_code == 422


def test_classify_transport_error():
    orchestrator = ClassificationOrchestrator(FakeSource(transport_error=True))
    api_server.app.dependency_overrides[api_server.get_orchestrator] = lambda: orchestrator
    try:
        response = TestClient(api_server.app).post("/classify", json={"code": "111"})
    finally:
        api_server.app.dependency_overrides.clear()
    assert response.status_code == 502


def test_history_lists_recent_scans(client):
    client.post("/classify", json={"code": "111"})
    client.post("/classify", json={"code": "222"})
    codes = [item["code"] for item in client.get("/history").json()]
    assert codes == ["222", "111"]


def test_advisory_relay_without_key(client):
    assert client.get("/advisory").json()["has_key"] is False
    body = client.post("/advisory", json={"code": "1", "name": "x", "lang": "sk"}).json()
    assert body["status"] == "maybe"
    assert body["notes"] == ["AI nie je zapnuté (chýba OPENAI_API_KEY)."]


def test_not_found_carries_advisory_only_verdict():
    orchestrator = ClassificationOrchestrator(
        FakeSource({}),
        advisory=FakeAdvisory(AdvisoryOk(status=Status.MAYBE, notes=("guess",))),
        advisory_on_not_found=True,
    )
    api_server.app.dependency_overrides[api_server.get_orchestrator] = lambda: orchestrator
    try:
        response = TestClient(api_server.app).post("/classify", json={"code": "000"})
    finally:
        api_server.app.dependency_overrides.clear()
    assert response.status_code == 404
    body = response.json()
    assert body["error"] == "not_found"
    assert body["verdict"]["status"] == "maybe"
    assert body["verdict"]["notes"][-1] == "guess"
    assert body["advisory_consulted"] is True


def test_product_ingredients_follow_request_language(products, client):
    products["111"]["ingredients_text_sk"] = "kakao, mlieko"
    products["111"]["ingredients_text_en"] = "cocoa, milk"
    sk = client.post("/classify", json={"code": "111", "lang": "sk"}).json()
    en = client.post("/classify", json={"code": "111", "lang": "en"}).json()
    assert sk["product"]["ingredients_text"].startswith("kakao, mlieko")
    assert en["product"]["ingredients_text"].startswith("cocoa, milk")
