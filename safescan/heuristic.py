"""
Local heuristic classifier.

Maps one ProductRecord to a ClassificationVerdict using only data already in
the record. Stages run in a fixed order and can only move the status towards
avoid/maybe:

- declared allergen tags (segment-anchored) -> avoid
- ingredient free text against the lexicon -> avoid (notes accumulate)
- no allergen signal: gluten-free claim without a may-contain-gluten analysis
  tag -> safe, anything else -> maybe
- traces mentioning milk or gluten cereals -> warning note, safe becomes maybe
"""

from __future__ import annotations

import re
from typing import Iterable, List, Sequence, Tuple

from . import lexicon
from .lexicon import note
from .models import ClassificationVerdict, ProductRecord, Status


def tag_segment(tag: str) -> str:
    """Last hierarchical segment of a tag: 'en:milk' -> 'milk'."""
    return str(tag).strip().lower().rsplit(":", 1)[-1].strip()


def matching_tags(tags: Iterable[str], markers: Iterable[str]) -> List[str]:
    markers = set(markers)
    return [tag for tag in tags if tag_segment(tag) in markers]


def scrub(text: str) -> str:
    """Lowercase ``text`` and blank out additive names that are not allergens."""
    text = (text or "").lower()
    for phrase in lexicon.NON_ALLERGEN_PHRASES:
        text = text.replace(phrase, " ")
    return text


def _term_in(term: str, text: str) -> bool:
    if term in lexicon.WORD_START_TERMS:
        return re.search(r"(?<!\w)" + re.escape(term), text) is not None
    return term in text


def matching_terms(text: str, terms: Sequence[str]) -> List[str]:
    return [term for term in terms if _term_in(term, text)]


def _worse(current: Status, candidate: Status) -> Status:
    return candidate if candidate.severity > current.severity else current


class HeuristicClassifier:
    """
    Deterministic tag/keyword classifier for milk protein and gluten.
    ``lang`` selects the note language and the preferred ingredient text.
    """

    def __init__(self, lang: str = lexicon.DEFAULT_LANG):
        self.lang = lang

    def classify(self, record: ProductRecord) -> ClassificationVerdict:
        notes: List[str] = []
        status = Status.MAYBE
        allergen_found = False

        milk_tags = matching_tags(record.allergens_tags, lexicon.MILK_TAG_MARKERS)
        gluten_tags = matching_tags(record.allergens_tags, lexicon.GLUTEN_TAG_MARKERS)
        if milk_tags:
            notes.append(note("milk_declared", self.lang, tags=", ".join(milk_tags)))
        if gluten_tags:
            notes.append(note("gluten_declared", self.lang, tags=", ".join(gluten_tags)))

        text = scrub(record.ingredient_text(self._languages()))
        milk_terms = matching_terms(text, lexicon.MILK_TERMS)
        gluten_terms = matching_terms(text, lexicon.GLUTEN_TERMS)
        if milk_terms:
            notes.append(note("milk_ingredients", self.lang, terms=", ".join(milk_terms)))
        if gluten_terms:
            notes.append(note("gluten_ingredients", self.lang, terms=", ".join(gluten_terms)))

        if milk_tags or gluten_tags or milk_terms or gluten_terms:
            allergen_found = True
            status = _worse(status, Status.AVOID)

        if not allergen_found:
            status, claim_notes = self._free_from(record)
            notes.extend(claim_notes)

        status, trace_notes = self._traces(record, status)
        notes.extend(trace_notes)

        return ClassificationVerdict(status=status, notes=tuple(notes), source="heuristic")

    def _languages(self) -> Tuple[str, ...]:
        preferred = (self.lang or "").lower()
        rest = tuple(lang for lang in lexicon.INGREDIENT_LANG_PRIORITY if lang != preferred)
        return ((preferred,) if preferred else ()) + rest

    def _free_from(self, record: ProductRecord) -> Tuple[Status, List[str]]:
        labelled = bool(matching_tags(record.labels_tags, lexicon.GLUTEN_FREE_LABEL_MARKERS))
        claimed = bool(lexicon.FREE_FROM_CLAIM.search(record.claims_text()))
        may_contain_gluten = any(
            lexicon.MAY_CONTAIN_GLUTEN_ANALYSIS in tag.lower()
            for tag in record.ingredients_analysis_tags
        )

        if (labelled or claimed) and not may_contain_gluten:
            return Status.SAFE, [note("declared_gluten_free", self.lang)]

        notes = [note("inconclusive", self.lang)]
        if may_contain_gluten:
            notes.append(note("may_contain_gluten", self.lang))
        return Status.MAYBE, notes

    def _traces(self, record: ProductRecord, status: Status) -> Tuple[Status, List[str]]:
        traces = scrub(record.traces_text())
        notes: List[str] = []
        if matching_terms(traces, lexicon.TRACE_MILK_TERMS):
            notes.append(note("traces_milk", self.lang))
        if matching_terms(traces, lexicon.TRACE_GLUTEN_TERMS):
            notes.append(note("traces_gluten", self.lang))
        if notes and status == Status.SAFE:
            status = Status.MAYBE
        return status, notes


def classify_product(record: ProductRecord, lang: str = lexicon.DEFAULT_LANG) -> ClassificationVerdict:
    """Convenience wrapper around HeuristicClassifier."""
    return HeuristicClassifier(lang=lang).classify(record)
