"""
Client for the external advisory endpoint (language-model second opinion).

Sends a bounded product subset, applies a client-side timeout and decodes the
reply with a strict parser. Every failure path resolves to AdvisoryDegraded;
nothing raises past AdvisoryClient.consult.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional

import requests

from . import lexicon
from .errors import AdvisoryUnavailable
from .lexicon import note
from .models import (
    AdvisoryDegraded,
    AdvisoryOk,
    AdvisoryRequest,
    AdvisoryResult,
    ProductRecord,
    Status,
)

EMBEDDED_OBJECT = re.compile(r"\{[\s\S]*\}")
ENVELOPE_KEYS = ("result", "data", "verdict", "advisory")


def _load_json(text: str) -> Any:
    """Parse JSON text, falling back to the first embedded {...} object."""
    text = (text or "").strip()
    if not text:
        raise AdvisoryUnavailable("malformed", "empty body")
    try:
        return json.loads(text)
    except ValueError:
        pass
    match = EMBEDDED_OBJECT.search(text)
    if not match:
        raise AdvisoryUnavailable("malformed", "no JSON object in body")
    try:
        return json.loads(match.group(0))
    except ValueError as exc:
        raise AdvisoryUnavailable("malformed", str(exc)) from exc


def _unwrap(body: Any, depth: int = 0) -> dict:
    """Find the dict carrying a 'status' key inside the known envelopes."""
    if depth > 3:
        raise AdvisoryUnavailable("malformed", "nested too deeply")
    if isinstance(body, str):
        return _unwrap(_load_json(body), depth + 1)
    if not isinstance(body, dict):
        raise AdvisoryUnavailable("malformed", f"unexpected {type(body).__name__}")

    if body.get("ok") is False:
        raise AdvisoryUnavailable("rejected", str(body.get("error") or "ok=false"))
    if "status" in body:
        return body

    for key in ENVELOPE_KEYS:
        inner = body.get(key)
        if isinstance(inner, (dict, str)) and inner:
            return _unwrap(inner, depth + 1)

    # OpenAI chat-completions shape forwarded verbatim by a relay
    choices = body.get("choices")
    if isinstance(choices, list) and choices:
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str):
            return _unwrap(content, depth + 1)

    raise AdvisoryUnavailable("malformed", "no status field")


def parse_advisory_reply(body: Any) -> AdvisoryOk:
    """
    Strictly decode an advisory reply.

    Accepts a dict, JSON text, or free text with an embedded JSON object,
    optionally wrapped in a known envelope. The status must be one of the three
    enumerators; notes, when present, must be a list (non-string items are
    dropped). Raises AdvisoryUnavailable otherwise.
    """
    payload = _unwrap(body)
    status = Status.parse(payload.get("status"))
    if status is None:
        raise AdvisoryUnavailable("malformed", f"invalid status {payload.get('status')!r}")

    raw_notes = payload.get("notes", [])
    if raw_notes is None:
        raw_notes = []
    if not isinstance(raw_notes, list):
        raise AdvisoryUnavailable("malformed", "notes is not a list")
    notes = [item.strip() for item in raw_notes if isinstance(item, str) and item.strip()]
    return AdvisoryOk(status=status, notes=tuple(notes))


class AdvisoryClient:
    """
    POSTs an AdvisoryRequest to the advisory URL and returns a tagged result.
    An empty URL disables the client without touching the network.
    """

    DEFAULT_TIMEOUT = 12.0

    def __init__(
        self,
        url: Optional[str],
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        lang: str = lexicon.DEFAULT_LANG,
    ):
        self.url = (url or "").strip()
        self.timeout = timeout
        self.session = session or requests.Session()
        self.lang = lang
        self.log = logging.getLogger(self.__class__.__name__)

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def build_request(
        self, record: Optional[ProductRecord], code: str = "", lang: Optional[str] = None
    ) -> AdvisoryRequest:
        lang = lang or self.lang
        if record is None:
            return AdvisoryRequest(code=code, lang=lang)
        languages = (lang,) + lexicon.INGREDIENT_LANG_PRIORITY
        allergens = record.allergens_summary()
        traces = record.traces_text()
        if traces:
            allergens = f"{allergens}; traces: {traces}" if allergens else f"traces: {traces}"
        return AdvisoryRequest(
            code=record.code or code,
            name=record.display_name,
            ingredients=record.ingredient_text(languages),
            allergens=allergens,
            lang=lang,
        )

    def consult(self, request: AdvisoryRequest) -> AdvisoryResult:
        lang = request.lang or self.lang
        if not self.enabled:
            return AdvisoryDegraded(notes=(note("advisory_disabled", lang),), reason="disabled")

        try:
            response = self.session.post(
                self.url, json=request.to_payload(), timeout=self.timeout
            )
        except requests.Timeout:
            self.log.warning("Advisory request for %s timed out after %ss", request.code, self.timeout)
            return AdvisoryDegraded(notes=(note("advisory_timeout", lang),), reason="timeout")
        except requests.RequestException as exc:
            self.log.warning("Advisory request for %s failed: %s", request.code, exc)
            return AdvisoryDegraded(notes=(note("advisory_network", lang),), reason="network")

        if not 200 <= response.status_code < 300:
            self.log.warning(
                "Advisory endpoint answered HTTP %s for %s", response.status_code, request.code
            )
            return AdvisoryDegraded(
                notes=(note("advisory_http", lang, status=response.status_code),), reason="http"
            )

        try:
            return parse_advisory_reply(response.text)
        except AdvisoryUnavailable as exc:
            self.log.warning("Advisory reply for %s unusable: %s", request.code, exc)
            return AdvisoryDegraded(notes=(note("advisory_malformed", lang),), reason=exc.reason)


def default_advisory_notes(result: AdvisoryResult, lang: str) -> List[str]:
    """Notes to append for an advisory result; never empty for AdvisoryOk."""
    if isinstance(result, AdvisoryOk):
        return list(result.notes) or [note("advisory_refined", lang)]
    return list(result.notes)
