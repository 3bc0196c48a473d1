"""
CLI entrypoint to check a product barcode for gluten and milk protein.

Flow:
- Parse user inputs (code, language, output format, advisory and history options).
- Load settings from the environment and let flags override them.
- Build the orchestrator (OpenFoodFacts lookup, heuristic, advisory fallback).
- Classify the product, render a text report or JSON payload, and record the
  result in the scan history.
"""

import argparse
import dataclasses
import json
import logging
import sys
from typing import List, Optional

from safescan import (
    ClassificationOrchestrator,
    ErrorKind,
    HistoryStore,
    Settings,
    Status,
    build_orchestrator,
)

# Simple i18n table for CLI output (extendable with more locales).
TRANSLATIONS = {
    "en": {
        "cli_title": "=== Gluten & Milk Checker ===",
        "verdict": "Verdict",
        "brand": "Brand",
        "code": "Code",
        "notes": "Why",
        "allergens": "Declared allergens",
        "ingredients": "Ingredients",
        "not_listed": "not listed",
        "last_modified": "Last updated",
        "advisory_consulted": "Advisory assessment consulted",
        "history_title": "=== Recent scans ===",
        "history_empty": "No scans yet.",
        "status_safe": "SAFE",
        "status_avoid": "AVOID",
        "status_maybe": "UNSURE",
    },
    "sk": {
        "cli_title": "=== Kontrola lepku a mlieka ===",
        "verdict": "Hodnotenie",
        "brand": "Značka",
        "code": "Kód",
        "notes": "Prečo",
        "allergens": "Alergény (z databázy)",
        "ingredients": "Ingrediencie",
        "not_listed": "neuvádzané",
        "last_modified": "Posledná aktualizácia",
        "advisory_consulted": "Použité hodnotenie asistenta",
        "history_title": "=== Posledné skeny ===",
        "history_empty": "Zatiaľ prázdne.",
        "status_safe": "BEZPEČNÉ",
        "status_avoid": "VYHNÚŤ SA",
        "status_maybe": "NEISTÉ",
    },
}

EXIT_CODES = {
    ErrorKind.NOT_FOUND: 1,
    ErrorKind.TRANSPORT: 2,
    ErrorKind.INVALID_CODE: 3,
}


def _t(key: str, lang: str = "en") -> str:
    """Translate a key to the requested language with English fallback."""
    bundle = TRANSLATIONS.get(lang, TRANSLATIONS["en"])
    template = bundle.get(key) or TRANSLATIONS["en"].get(key, key)
    return template


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Configure and parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Check whether a product is safe for gluten and milk protein avoidance"
    )
    parser.add_argument("--code", help="Product barcode (EAN/UPC)")
    parser.add_argument(
        "--lang",
        default=None,
        help="Language for notes and labels (en, sk). Defaults to SAFESCAN_LANG or en.",
    )
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument(
        "--advisory-url",
        default=None,
        help="Advisory endpoint URL (overrides SAFESCAN_ADVISORY_URL).",
    )
    parser.add_argument(
        "--no-advisory",
        action="store_true",
        default=False,
        help="Never consult the advisory endpoint.",
    )
    parser.add_argument(
        "--history-path",
        default=None,
        help="CSV file for the scan history (overrides SAFESCAN_HISTORY_PATH).",
    )
    parser.add_argument(
        "--show-history",
        action="store_true",
        default=False,
        help="Print the recent scans and exit.",
    )
    parser.add_argument("--verbose", action="store_true", default=False, help="Debug logging")
    args = parser.parse_args(argv)
    if not args.show_history and not args.code:
        parser.error("--code is required unless --show-history is given")
    return args


def settings_from_args(args: argparse.Namespace, base: Optional[Settings] = None) -> Settings:
    """Apply CLI overrides on top of environment settings."""
    settings = base or Settings.from_env()
    overrides = {}
    if args.lang:
        overrides["lang"] = args.lang
    if args.advisory_url is not None:
        overrides["advisory_url"] = args.advisory_url
    if args.no_advisory:
        overrides["advisory_url"] = ""
    if args.history_path:
        overrides["history_path"] = args.history_path
    return dataclasses.replace(settings, **overrides)


def status_label(status: Status, lang: str = "en") -> str:
    return _t(f"status_{status.value}", lang)


def render_text_result(outcome, lang: str = "en") -> str:
    """Pretty-print a classification in a short text report."""
    product = outcome.product
    verdict = outcome.verdict
    lines = [_t("cli_title", lang), product.display_name]
    if product.brand:
        lines.append(f"{_t('brand', lang)}: {product.brand}")
    lines.append(f"{_t('code', lang)}: {product.code}")
    lines.append(f"{_t('verdict', lang)}: {status_label(verdict.status, lang)}")

    if verdict.notes:
        lines.append(f"\n{_t('notes', lang)}:")
        for item in verdict.notes:
            lines.append(f"  - {item}")

    allergens = ", ".join(tag.split(":", 1)[-1] for tag in product.allergens_tags)
    lines.append(f"\n{_t('allergens', lang)}: {allergens or _t('not_listed', lang)}")
    ingredients = product.ingredient_text((lang, "sk", "cs", "en"))
    lines.append(f"{_t('ingredients', lang)}: {ingredients or _t('not_listed', lang)}")
    last_modified = product.last_modified
    lines.append(
        f"{_t('last_modified', lang)}: "
        f"{last_modified.date().isoformat() if last_modified else _t('not_listed', lang)}"
    )
    if outcome.advisory_consulted:
        lines.append(_t("advisory_consulted", lang))
    return "\n".join(lines)


def render_history(store: HistoryStore, lang: str = "en") -> str:
    lines = [_t("history_title", lang)]
    entries = store.entries()
    if not entries:
        lines.append(_t("history_empty", lang))
    for entry in entries:
        brand = f"{entry.brand} · " if entry.brand else ""
        lines.append(f"  {status_label(entry.status, lang):<10} {entry.name} ({brand}{entry.code})")
    return "\n".join(lines)


def outcome_to_json(outcome) -> dict:
    payload = {
        "code": outcome.code,
        "error": outcome.error.value if outcome.error else None,
        "message": outcome.message or None,
        "verdict": outcome.verdict.to_dict() if outcome.verdict else None,
        "advisory_consulted": outcome.advisory_consulted,
    }
    if outcome.product is not None:
        payload["product"] = {
            "name": outcome.product.display_name,
            "brand": outcome.product.brand,
            "allergens_tags": list(outcome.product.allergens_tags),
        }
    return payload


def run(
    args: argparse.Namespace,
    orchestrator: Optional[ClassificationOrchestrator] = None,
    settings: Optional[Settings] = None,
) -> int:
    settings = settings_from_args(args, base=settings)
    lang = settings.lang
    if args.show_history:
        print(render_history(HistoryStore(settings.history_path, limit=settings.history_limit), lang))
        return 0

    orchestrator = orchestrator or build_orchestrator(settings)
    outcome = orchestrator.classify_sync(args.code, lang=lang)

    if args.format == "json":
        print(json.dumps(outcome_to_json(outcome), indent=2, ensure_ascii=False))
    elif outcome.error is not None:
        print(outcome.message)
        if outcome.verdict is not None:
            print(f"{_t('verdict', lang)}: {status_label(outcome.verdict.status, lang)}")
            for item in outcome.verdict.notes:
                print(f"  - {item}")
    else:
        print(render_text_result(outcome, lang=lang))

    return EXIT_CODES.get(outcome.error, 0)


def main() -> None:
    """Entrypoint: parse flags, classify, render output."""
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(run(args))


if __name__ == "__main__":
    main()
