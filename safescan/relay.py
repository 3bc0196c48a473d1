"""
Advisory relay backend: turns an advisory payload into a chat-completions
call and answers with ``{ok, status, notes}``.

It always answers: without an API key it echoes a "maybe" with an explanatory
note, and any upstream failure also becomes "maybe" with a failure note.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import requests

from .advisory_client import parse_advisory_reply
from .errors import AdvisoryUnavailable
from .models import Status

SYSTEM_PROMPT = (
    "You assist people with coeliac disease and milk protein allergy. "
    'From the product data decide "safe", "avoid" or "maybe" (uncertain) and '
    "explain briefly why. If traces of milk or gluten are declared, prefer "
    '"maybe". Answer in the language given by "lang".'
)

RELAY_NOTES: Dict[str, Dict[str, str]] = {
    "en": {
        "disabled": "Advisory model is not enabled (missing OPENAI_API_KEY).",
        "failed": "Advisory model request failed.",
        "empty": "No details.",
    },
    "sk": {
        "disabled": "AI nie je zapnuté (chýba OPENAI_API_KEY).",
        "failed": "AI požiadavka zlyhala.",
        "empty": "Bez detailov.",
    },
}


def _relay_note(key: str, lang: str) -> str:
    bundle = RELAY_NOTES.get((lang or "").lower(), RELAY_NOTES["en"])
    return bundle.get(key) or RELAY_NOTES["en"][key]


def build_user_prompt(payload: Dict[str, str]) -> str:
    return (
        f"lang={payload.get('lang') or 'en'}\n"
        f"name={payload.get('name') or ''}\n"
        f"code={payload.get('code') or ''}\n"
        f"allergens={payload.get('allergens') or ''}\n"
        f"ingredients={(payload.get('ingredients') or '')[:1000]}\n"
        'Return JSON: {"status":"safe|avoid|maybe","notes":["...","..."]}'
    )


class OpenAIAdvisor:
    """
    Calls the OpenAI chat-completions API with a short prompt.
    """

    ENDPOINT = "https://api.openai.com/v1/chat/completions"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        timeout: float = 20.0,
        session: Optional[requests.Session] = None,
        endpoint: Optional[str] = None,
    ):
        self.api_key = api_key or ""
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()
        self.endpoint = endpoint or self.ENDPOINT
        self.log = logging.getLogger(self.__class__.__name__)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def evaluate(self, payload: Dict[str, str]) -> Dict[str, object]:
        lang = payload.get("lang") or "en"
        if not self.enabled:
            return {
                "ok": True,
                "ai": None,
                "status": Status.MAYBE.value,
                "notes": [_relay_note("disabled", lang)],
                "echo": payload,
            }

        try:
            text = self._complete(payload)
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as exc:
            self.log.warning("Advisory model call failed: %s", exc)
            return {
                "ok": True,
                "status": Status.MAYBE.value,
                "notes": [_relay_note("failed", lang), str(exc)],
            }

        return {"ok": True, **self._interpret(text, lang)}

    def _complete(self, payload: Dict[str, str]) -> str:
        response = self.session.post(
            self.endpoint,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": self.model,
                "temperature": 0.2,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(payload)},
                ],
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()
        return data["choices"][0]["message"]["content"] or ""

    @staticmethod
    def _interpret(text: str, lang: str) -> Dict[str, object]:
        """Parse the model's answer; fall back to 'maybe' with the raw text."""
        try:
            parsed = parse_advisory_reply(text)
        except AdvisoryUnavailable:
            notes: List[str] = [text.strip() or _relay_note("empty", lang)]
            return {"status": Status.MAYBE.value, "notes": notes}
        notes = list(parsed.notes) or [text.strip() or _relay_note("empty", lang)]
        return {"status": parsed.status.value, "notes": notes}
