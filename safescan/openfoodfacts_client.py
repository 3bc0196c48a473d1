"""
Food database lookup backed by OpenFoodFacts.

Fetches ``<base>/<code>.json`` and turns the ``product`` object into a
ProductRecord. Not-found and transport failures are raised as distinct errors
so the orchestrator can tell them apart.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

import requests

from .errors import LookupNotFound, LookupTransportError
from .models import ProductRecord


class ProductDataSource:
    """
    Base interface for any product data source (API, cache, fixtures).
    """

    def get_product(self, code: str) -> ProductRecord:
        raise NotImplementedError


class OpenFoodFactsClient(ProductDataSource):
    """
    Thin wrapper around the OpenFoodFacts public API.
    """

    BASE_URL = "https://world.openfoodfacts.org/api/v2/product"
    USER_AGENT = "safescan/0.1 (gluten and milk protein checker)"
    FIELDS = (
        "code",
        "product_name",
        "generic_name",
        "brands",
        "ingredients_text",
        "ingredients_text_sk",
        "ingredients_text_cs",
        "ingredients_text_en",
        "ingredients",
        "allergens",
        "allergens_tags",
        "traces",
        "traces_tags",
        "labels",
        "labels_tags",
        "ingredients_analysis_tags",
        "last_modified_t",
    )

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        extra_languages: tuple = (),
    ):
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.fields = self.FIELDS + tuple(f"ingredients_text_{lang}" for lang in extra_languages)
        self.log = logging.getLogger(self.__class__.__name__)

    def product_url(self, code: str) -> str:
        return f"{self.base_url}/{quote(code, safe='')}.json"

    def get_product(self, code: str) -> ProductRecord:
        try:
            response = self.session.get(
                self.product_url(code),
                params={"fields": ",".join(self.fields)},
                headers={"User-Agent": self.USER_AGENT},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            self.log.warning("OpenFoodFacts fetch failed for %s: %s", code, exc)
            raise LookupTransportError(code, str(exc)) from exc

        if response.status_code == 404:
            self.log.info("Product %s not found on OpenFoodFacts", code)
            raise LookupNotFound(code)
        if not 200 <= response.status_code < 300:
            self.log.warning("OpenFoodFacts answered HTTP %s for %s", response.status_code, code)
            raise LookupTransportError(code, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            self.log.warning("OpenFoodFacts returned invalid JSON for %s: %s", code, exc)
            raise LookupTransportError(code, "invalid JSON") from exc

        if not isinstance(data, dict) or data.get("status") != 1 or not data.get("product"):
            self.log.info("Product %s not found on OpenFoodFacts", code)
            raise LookupNotFound(code)

        return ProductRecord.from_off_payload(code, data["product"])
