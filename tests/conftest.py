import json

import pytest
import requests

from safescan import (
    AdvisoryDegraded,
    AdvisoryOk,
    AdvisoryRequest,
    LookupNotFound,
    LookupTransportError,
    ProductDataSource,
    ProductRecord,
    Status,
)


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        if text is None:
            text = json.dumps(body) if body is not None else ""
        self.text = text

    def json(self):
        if self._body is None:
            return json.loads(self.text)
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class FakeSession:
    """Records calls and replays a response (or raises an exception)."""

    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def _handle(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.response

    def get(self, url, **kwargs):
        return self._handle("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._handle("POST", url, **kwargs)


class FakeSource(ProductDataSource):
    """Product source backed by a dict of OFF-style payloads."""

    def __init__(self, products=None, transport_error=False):
        self.products = products or {}
        self.transport_error = transport_error
        self.calls = []

    def get_product(self, code):
        self.calls.append(code)
        if self.transport_error:
            raise LookupTransportError(code, "connection refused")
        if code not in self.products:
            raise LookupNotFound(code)
        return ProductRecord.from_off_payload(code, self.products[code])


class FakeAdvisory:
    """Advisory client double that counts consultations."""

    def __init__(self, result=None):
        self.result = result or AdvisoryOk(status=Status.SAFE, notes=("X",))
        self.requests = []

    def build_request(self, record, code="", lang=None):
        name = record.display_name if record is not None else ""
        return AdvisoryRequest(code=code, name=name, lang=lang or "en")

    def consult(self, request):
        self.requests.append(request)
        return self.result

    @property
    def calls(self):
        return len(self.requests)


MILK_PRODUCT = {"product_name": "Milk chocolate", "brands": "Choco, Other", "allergens_tags": ["en:milk"]}
SAFE_PRODUCT = {
    "product_name": "Rice crackers",
    "brands": "Crunch",
    "labels": "gluten-free",
    "ingredients_text": "rice, water, salt",
}
MAYBE_PRODUCT = {"product_name": "Mystery snack", "ingredients_text": "corn, sunflower oil"}


@pytest.fixture
def products():
    return {
        "111": dict(MILK_PRODUCT),
        "222": dict(SAFE_PRODUCT),
        "333": dict(MAYBE_PRODUCT),
    }


@pytest.fixture
def source(products):
    return FakeSource(products)


@pytest.fixture
def degraded():
    return AdvisoryDegraded(notes=("Advisory assessment timed out; keeping the local result.",), reason="timeout")
