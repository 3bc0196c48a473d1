"""
Shared domain models used by the classification pipeline.

- Status: closed verdict enumeration (safe, maybe, avoid) with merge ordering.
- ProductRecord: sparse, immutable view of a food-database product.
- ClassificationVerdict: status plus ordered justification notes.
- AdvisoryOk/AdvisoryDegraded: tagged result of an advisory consultation.
- AdvisoryRequest: bounded payload sent to the advisory endpoint.
- HistoryEntry: what survives of a classification in the scan history.
- ClassificationOutcome: everything one lookup produced, including errors.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple, Union

UNKNOWN_PRODUCT = "Unknown product"


class Status(str, Enum):
    SAFE = "safe"
    MAYBE = "maybe"
    AVOID = "avoid"

    @property
    def severity(self) -> int:
        return {Status.SAFE: 0, Status.MAYBE: 1, Status.AVOID: 2}[self]

    @classmethod
    def parse(cls, value: object) -> Optional["Status"]:
        """Return the matching Status or None for anything else."""
        if isinstance(value, Status):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    TRANSPORT = "transport"
    INVALID_CODE = "invalid_code"


def _as_tags(value: object) -> Tuple[str, ...]:
    """Coerce a list/str/None field into a tuple of non-empty strings."""
    if value is None:
        return ()
    if isinstance(value, str):
        items: Iterable[object] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        return ()
    return tuple(str(item).strip() for item in items if str(item).strip())


def _as_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value if item)
    return str(value).strip()


@dataclass(frozen=True)
class ProductRecord:
    """
    Normalized product as returned by the food database.

    Every field defaults to empty; a missing field means "no evidence", never
    an explicit negative.
    """

    code: str
    product_name: str = ""
    generic_name: str = ""
    brands: str = ""
    ingredients_texts: Dict[str, str] = field(default_factory=dict)
    ingredient_fragments: Tuple[str, ...] = ()
    allergens_tags: Tuple[str, ...] = ()
    allergens_text: str = ""
    traces: str = ""
    traces_tags: Tuple[str, ...] = ()
    labels: str = ""
    labels_tags: Tuple[str, ...] = ()
    ingredients_analysis_tags: Tuple[str, ...] = ()
    last_modified_t: Optional[int] = None

    @classmethod
    def from_off_payload(cls, code: str, payload: Optional[dict]) -> "ProductRecord":
        """Build a record from an OpenFoodFacts ``product`` object."""
        payload = payload if isinstance(payload, dict) else {}

        texts: Dict[str, str] = {}
        for key, value in payload.items():
            if not isinstance(key, str) or not key.startswith("ingredients_text"):
                continue
            text = _as_text(value)
            if not text:
                continue
            suffix = key[len("ingredients_text"):]
            if suffix == "":
                texts[""] = text
            elif suffix.startswith("_") and len(suffix) in (3, 4):
                # ingredients_text_sk, ingredients_text_cs ... (skip _with_allergens etc.)
                texts[suffix[1:].lower()] = text

        fragments = []
        ingredients = payload.get("ingredients")
        if isinstance(ingredients, list):
            for item in ingredients:
                if isinstance(item, dict) and item.get("text"):
                    fragments.append(str(item["text"]))

        try:
            last_modified = int(payload.get("last_modified_t"))
        except (TypeError, ValueError):
            last_modified = None

        return cls(
            code=str(payload.get("code") or code),
            product_name=_as_text(payload.get("product_name")),
            generic_name=_as_text(payload.get("generic_name")),
            brands=_as_text(payload.get("brands")),
            ingredients_texts=texts,
            ingredient_fragments=tuple(fragments),
            allergens_tags=_as_tags(payload.get("allergens_tags")),
            allergens_text=_as_text(payload.get("allergens")),
            traces=_as_text(payload.get("traces")),
            traces_tags=_as_tags(payload.get("traces_tags")),
            labels=_as_text(payload.get("labels")),
            labels_tags=_as_tags(payload.get("labels_tags")),
            ingredients_analysis_tags=_as_tags(payload.get("ingredients_analysis_tags")),
            last_modified_t=last_modified,
        )

    @property
    def display_name(self) -> str:
        return self.product_name or self.generic_name or UNKNOWN_PRODUCT

    @property
    def brand(self) -> str:
        return self.brands.split(",")[0].strip()

    @property
    def last_modified(self) -> Optional[datetime]:
        if self.last_modified_t is None:
            return None
        return datetime.fromtimestamp(self.last_modified_t, tz=timezone.utc)

    def ingredient_text(self, languages: Iterable[str]) -> str:
        """
        Join every ingredient text variant: the given languages first (in
        order), then any other tagged variant, then the untagged default and
        the structured ingredient fragments. Duplicates are dropped.
        """
        ordered = []
        for lang in languages:
            if lang:
                ordered.append(self.ingredients_texts.get(lang.lower(), ""))
        ordered.extend(
            text for lang, text in sorted(self.ingredients_texts.items()) if lang
        )
        ordered.append(self.ingredients_texts.get("", ""))
        ordered.extend(self.ingredient_fragments)

        seen = set()
        unique = []
        for text in ordered:
            if text and text not in seen:
                seen.add(text)
                unique.append(text)
        return " ".join(unique)

    def traces_text(self) -> str:
        return " ".join(part for part in (self.traces, ", ".join(self.traces_tags)) if part)

    def claims_text(self) -> str:
        """Free text where a gluten-free claim may appear."""
        parts = (self.labels, ", ".join(self.labels_tags), self.product_name, self.generic_name)
        return " ".join(part for part in parts if part)

    def allergens_summary(self) -> str:
        return ", ".join(part for part in (", ".join(self.allergens_tags), self.allergens_text) if part)


@dataclass(frozen=True)
class ClassificationVerdict:
    status: Status
    notes: Tuple[str, ...] = ()
    source: str = "heuristic"

    def to_dict(self) -> dict:
        return {"status": self.status.value, "notes": list(self.notes), "source": self.source}


@dataclass(frozen=True)
class AdvisoryOk:
    status: Status
    notes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AdvisoryDegraded:
    notes: Tuple[str, ...] = ()
    reason: str = "unavailable"


AdvisoryResult = Union[AdvisoryOk, AdvisoryDegraded]


@dataclass(frozen=True)
class AdvisoryRequest:
    """Sanitized product subset forwarded to the advisory endpoint."""

    code: str = ""
    name: str = ""
    ingredients: str = ""
    allergens: str = ""
    lang: str = "en"

    MAX_NAME = 200
    MAX_INGREDIENTS = 1000
    MAX_ALLERGENS = 500

    def to_payload(self) -> Dict[str, str]:
        return {
            "code": self.code,
            "name": self.name[: self.MAX_NAME],
            "ingredients": self.ingredients[: self.MAX_INGREDIENTS],
            "allergens": self.allergens[: self.MAX_ALLERGENS],
            "lang": self.lang,
        }


@dataclass(frozen=True)
class HistoryEntry:
    code: str
    brand: str
    name: str
    status: Status
    timestamp: float

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class ClassificationOutcome:
    code: str
    verdict: Optional[ClassificationVerdict] = None
    product: Optional[ProductRecord] = None
    error: Optional[ErrorKind] = None
    message: str = ""
    history_entry: Optional[HistoryEntry] = None
    advisory_consulted: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and self.verdict is not None
