"""
Allergen lexicon: surface forms for milk protein and gluten sources, free-from
claim patterns, trace markers and the localized note catalogue.

Pure data. Terms are lowercase substrings in Slovak, Czech and English and are
matched against lowercased text, so both accented and unaccented spellings are
listed. Bump LEXICON_VERSION whenever a term set changes.
"""

from __future__ import annotations

import re
from typing import Dict, Tuple

LEXICON_VERSION = "2024.2"

MILK_TERMS: Tuple[str, ...] = (
    # sk
    "mlieko",
    "mliecna bielkovina",
    "mliečna bielkovina",
    "mliečny",
    "mliecny",
    "srvátka",
    "srvatka",
    "kazein",
    "kazeín",
    "maslo",
    "smotana",
    "tvaroh",
    "syry",
    # cs
    "mléko",
    "mléčn",
    "syrovátka",
    "kasein",
    "smetana",
    # en
    "milk",
    "whey",
    "casein",
    "caseinate",
    "cheese",
)

GLUTEN_TERMS: Tuple[str, ...] = (
    # sk
    "lepok",
    "pšenica",
    "psenica",
    "pšeničn",
    "jačmeň",
    "jacmen",
    "jačmenn",
    "raž",
    "špalda",
    "spalda",
    "ovos",
    # cs
    "lepek",
    "pšenice",
    "ječmen",
    "žito",
    "žitn",
    "ovesn",
    # en
    "wheat",
    "barley",
    "rye",
    "spelt",
    "spelta",
    "semolina",
    "triticale",
    "kamut",
)

# Stems that only count at the start of a word ("raž" but not "mražená", "pražené").
WORD_START_TERMS = frozenset({"raž"})

# Additives whose names contain a milk stem but no milk protein (lactic acid,
# lactates). Removed from the text before terms are matched.
NON_ALLERGEN_PHRASES: Tuple[str, ...] = (
    "kyselina mléčn",
    "kyselina mliečn",
    "mléčnan",
    "mliečnan",
)

# Last segment of an allergen tag ("en:milk" -> "milk") that declares presence.
MILK_TAG_MARKERS = frozenset({"milk", "milk-protein"})
GLUTEN_TAG_MARKERS = frozenset({"gluten"})

# Label tag segments that declare the product gluten-free.
GLUTEN_FREE_LABEL_MARKERS = frozenset({"gluten-free", "gluten free", "no-gluten"})

FREE_FROM_CLAIM = re.compile(r"gluten[- ]?free|bez[\s-]?lepku|bezlepkov", re.IGNORECASE)

# ingredients_analysis_tags fragment that disqualifies a safe verdict.
MAY_CONTAIN_GLUTEN_ANALYSIS = "may-contain-gluten"

TRACE_MILK_TERMS: Tuple[str, ...] = ("milk", "mliek", "mlieč", "mlék", "mléč")
TRACE_GLUTEN_TERMS: Tuple[str, ...] = (
    "gluten",
    "wheat",
    "barley",
    "rye",
    "lepk",
    "lepok",
    "lepek",
    "pšen",
    "jačm",
    "ječm",
)

# Ingredient text fallback order after the user's locale.
INGREDIENT_LANG_PRIORITY: Tuple[str, ...] = ("sk", "cs", "en")

DEFAULT_LANG = "en"

NOTES: Dict[str, Dict[str, str]] = {
    "en": {
        "milk_declared": "Contains milk protein (declared allergen: {tags}).",
        "milk_ingredients": "Contains milk protein in the ingredients ({terms}).",
        "gluten_declared": "Contains gluten (declared allergen: {tags}).",
        "gluten_ingredients": "Contains gluten-bearing cereals in the ingredients ({terms}).",
        "declared_gluten_free": "Declared gluten-free (label/product) and no milk found in the ingredients.",
        "inconclusive": "No risky allergens found, but the declaration is unclear. Check the label.",
        "may_contain_gluten": "Ingredient analysis flags possible gluten.",
        "traces_milk": "Warning: may contain traces of milk.",
        "traces_gluten": "Warning: may contain traces of gluten.",
        "advisory_refined": "Refined by the advisory assessment.",
        "advisory_disabled": "Advisory assessment is not enabled.",
        "advisory_timeout": "Advisory assessment timed out; keeping the local result.",
        "advisory_http": "Advisory assessment failed (HTTP {status}); keeping the local result.",
        "advisory_network": "Advisory assessment could not be reached; keeping the local result.",
        "advisory_malformed": "Advisory assessment returned an unreadable answer; keeping the local result.",
        "advisory_only": "Product not found in the food database; verdict is based on the advisory assessment only.",
        "not_found": "Product not found. Try entering the code manually.",
        "transport": "Could not reach the food database. Check your connection.",
        "invalid_code": "Enter a barcode first.",
    },
    "sk": {
        "milk_declared": "Obsahuje mliečnu bielkovinu (deklarovaný alergén: {tags}).",
        "milk_ingredients": "Obsahuje mliečnu bielkovinu v zložení ({terms}).",
        "gluten_declared": "Obsahuje lepok (deklarovaný alergén: {tags}).",
        "gluten_ingredients": "Obsahuje obilniny s lepkom v zložení ({terms}).",
        "declared_gluten_free": "Deklarované ako bezlepkové (štítok/produkt) a bez mlieka v zložení.",
        "inconclusive": "Nenašli sa rizikové alergény, ale deklarácia nie je jasná. Skontroluj etiketu.",
        "may_contain_gluten": "Analýza zloženia upozorňuje na možný lepok.",
        "traces_milk": "Upozornenie: môže obsahovať stopy mlieka.",
        "traces_gluten": "Upozornenie: môže obsahovať stopy lepku.",
        "advisory_refined": "Doplnené hodnotením asistenta.",
        "advisory_disabled": "Hodnotenie asistenta nie je zapnuté.",
        "advisory_timeout": "Hodnotenie asistenta vypršalo; ostáva lokálny výsledok.",
        "advisory_http": "Hodnotenie asistenta zlyhalo (HTTP {status}); ostáva lokálny výsledok.",
        "advisory_network": "Asistent je nedostupný; ostáva lokálny výsledok.",
        "advisory_malformed": "Asistent vrátil nečitateľnú odpoveď; ostáva lokálny výsledok.",
        "advisory_only": "Produkt sa v databáze nenašiel; výsledok je len z hodnotenia asistenta.",
        "not_found": "Produkt sa nenašiel. Skús zadať kód ručne.",
        "transport": "Nepodarilo sa spojiť s databázou potravín. Skontroluj pripojenie.",
        "invalid_code": "Najprv zadaj čiarový kód.",
    },
}


def note(key: str, lang: str = DEFAULT_LANG, **values: object) -> str:
    """Localized note with English fallback."""
    bundle = NOTES.get((lang or "").lower(), NOTES[DEFAULT_LANG])
    template = bundle.get(key) or NOTES[DEFAULT_LANG].get(key, key)
    return template.format(**values) if values else template
