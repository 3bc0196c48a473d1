"""
Classification orchestrator: the single control point of a lookup.

Key stages:
- resolve the code to a ProductRecord through an injected data source
- run the heuristic classifier
- consult the advisory client only when the heuristic says "maybe"
- merge both answers (advisory refines status, notes always accumulate)
- write one history entry per completed classification

Lookup failures become ClassificationOutcome.error; advisory failures become
notes. Blocking network calls run in worker threads so every run is awaitable
and cancellable.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from . import lexicon
from .advisory_client import AdvisoryClient, default_advisory_notes
from .config import Settings
from .errors import LookupNotFound, LookupTransportError
from .heuristic import HeuristicClassifier
from .history import HistoryStore
from .lexicon import note
from .models import (
    AdvisoryDegraded,
    AdvisoryOk,
    AdvisoryResult,
    ClassificationOutcome,
    ClassificationVerdict,
    ErrorKind,
    HistoryEntry,
    ProductRecord,
    Status,
)
from .openfoodfacts_client import OpenFoodFactsClient, ProductDataSource


def merge_verdicts(
    base: ClassificationVerdict, advisory: AdvisoryResult, lang: str = lexicon.DEFAULT_LANG
) -> ClassificationVerdict:
    """
    Combine the heuristic verdict with an advisory result. A usable advisory
    status replaces the base status; base notes always come first.
    """
    notes = tuple(base.notes) + tuple(default_advisory_notes(advisory, lang))
    if isinstance(advisory, AdvisoryOk):
        return ClassificationVerdict(status=advisory.status, notes=notes, source="merged")
    return ClassificationVerdict(status=base.status, notes=notes, source=base.source)


def advisory_only_verdict(
    advisory: AdvisoryResult, lang: str = lexicon.DEFAULT_LANG
) -> ClassificationVerdict:
    """Verdict for a code the food database does not know."""
    if isinstance(advisory, AdvisoryOk):
        notes = (note("advisory_only", lang),) + tuple(default_advisory_notes(advisory, lang))
        return ClassificationVerdict(status=advisory.status, notes=notes, source="advisory")
    notes = (note("inconclusive", lang),) + tuple(advisory.notes)
    return ClassificationVerdict(status=Status.MAYBE, notes=notes, source="advisory")


class ClassificationOrchestrator:
    """
    Sequences lookup, heuristic, optional advisory consultation and history.
    Holds no per-request state, so runs for different codes can overlap.
    """

    def __init__(
        self,
        product_source: ProductDataSource,
        advisory: Optional[AdvisoryClient] = None,
        history: Optional[HistoryStore] = None,
        lang: str = lexicon.DEFAULT_LANG,
        advisory_on_not_found: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.product_source = product_source
        self.advisory = advisory
        self.history = history
        self.lang = lang
        self.advisory_on_not_found = advisory_on_not_found
        self.clock = clock
        self.log = logging.getLogger(self.__class__.__name__)

    def should_consult(self, base: ClassificationVerdict) -> bool:
        return self.advisory is not None and base.status == Status.MAYBE

    async def classify(self, code: str, lang: Optional[str] = None) -> ClassificationOutcome:
        lang = lang or self.lang
        code = (code or "").strip()
        if not code:
            return ClassificationOutcome(
                code=code, error=ErrorKind.INVALID_CODE, message=note("invalid_code", lang)
            )

        try:
            product = await asyncio.to_thread(self.product_source.get_product, code)
        except LookupNotFound:
            return await self._not_found(code, lang)
        except LookupTransportError as exc:
            self.log.warning("Lookup for %s failed: %s", code, exc.reason)
            return ClassificationOutcome(
                code=code, error=ErrorKind.TRANSPORT, message=note("transport", lang)
            )

        base = HeuristicClassifier(lang=lang).classify(product)
        verdict = base
        consulted = False
        if self.should_consult(base):
            consulted = True
            advisory = await self._consult(product, code, lang)
            verdict = merge_verdicts(base, advisory, lang)
        self.log.debug("Classified %s as %s (%s)", code, verdict.status.value, verdict.source)

        entry = HistoryEntry(
            code=code,
            brand=product.brand,
            name=product.display_name,
            status=verdict.status,
            timestamp=self.clock(),
        )
        if self.history is not None:
            try:
                await asyncio.to_thread(self.history.record, entry)
            except OSError as exc:
                self.log.warning("Could not save history entry for %s: %s", code, exc)

        return ClassificationOutcome(
            code=code,
            verdict=verdict,
            product=product,
            history_entry=entry,
            advisory_consulted=consulted,
        )

    def classify_sync(self, code: str, lang: Optional[str] = None) -> ClassificationOutcome:
        return asyncio.run(self.classify(code, lang))

    async def _not_found(self, code: str, lang: str) -> ClassificationOutcome:
        outcome = ClassificationOutcome(
            code=code, error=ErrorKind.NOT_FOUND, message=note("not_found", lang)
        )
        if self.advisory_on_not_found and self.advisory is not None:
            advisory = await self._consult(None, code, lang)
            outcome.verdict = advisory_only_verdict(advisory, lang)
            outcome.advisory_consulted = True
        return outcome

    async def _consult(
        self, product: Optional[ProductRecord], code: str, lang: str
    ) -> AdvisoryResult:
        request = self.advisory.build_request(product, code=code, lang=lang)
        timeout = getattr(self.advisory, "timeout", None)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.advisory.consult, request), timeout
            )
        except asyncio.TimeoutError:
            self.log.warning("Advisory consultation for %s exceeded %ss", code, timeout)
            return AdvisoryDegraded(notes=(note("advisory_timeout", lang),), reason="timeout")


class ScanSession:
    """
    Front door for a scanner or search box.

    Rejects a repeated identical code inside the debounce window and keeps at
    most one classification in flight: submitting a new code cancels the
    previous run, whose result is then discarded (last write wins).
    """

    def __init__(
        self,
        orchestrator: ClassificationOrchestrator,
        debounce_seconds: float = 1.2,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.orchestrator = orchestrator
        self.debounce_seconds = debounce_seconds
        self.clock = clock
        self.latest: Optional[ClassificationOutcome] = None
        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._last_code: Optional[str] = None
        self._last_accepted_at: Optional[float] = None

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    def accept(self, code: str) -> bool:
        code = (code or "").strip()
        if not code:
            return False
        now = self.clock()
        if (
            code == self._last_code
            and self._last_accepted_at is not None
            and now - self._last_accepted_at < self.debounce_seconds
        ):
            return False
        self._last_code = code
        self._last_accepted_at = now
        return True

    def cancel(self) -> None:
        """Discard the in-flight run, if any."""
        self._generation += 1
        if self.in_flight:
            self._task.cancel()

    async def submit(self, code: str, lang: Optional[str] = None) -> Optional[ClassificationOutcome]:
        self.cancel()
        generation = self._generation
        task = asyncio.ensure_future(self.orchestrator.classify(code, lang))
        self._task = task
        try:
            outcome = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                return None
            raise
        if generation != self._generation:
            return None
        self.latest = outcome
        return outcome


def build_orchestrator(settings: Settings) -> ClassificationOrchestrator:
    """Wire the default collaborators from settings."""
    return ClassificationOrchestrator(
        product_source=OpenFoodFactsClient(
            base_url=settings.product_db_base,
            timeout=settings.lookup_timeout,
            extra_languages=(settings.lang,) if settings.lang not in ("sk", "cs", "en") else (),
        ),
        advisory=AdvisoryClient(
            settings.advisory_url, timeout=settings.advisory_timeout, lang=settings.lang
        ),
        history=HistoryStore(settings.history_path, limit=settings.history_limit),
        lang=settings.lang,
        advisory_on_not_found=settings.advisory_on_not_found,
    )
