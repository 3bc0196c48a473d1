import asyncio
import threading
import time

import pytest

from conftest import FakeAdvisory, FakeSource
from safescan import (
    AdvisoryDegraded,
    AdvisoryOk,
    ClassificationOrchestrator,
    ClassificationVerdict,
    ErrorKind,
    HistoryStore,
    ScanSession,
    Status,
    merge_verdicts,
)


def make(source, advisory=None, history=None, **kwargs):
    return ClassificationOrchestrator(
        source, advisory=advisory, history=history, clock=lambda: 1000.0, **kwargs
    )


@pytest.mark.parametrize(
    "code, heuristic_status, expected_calls",
    [("111", Status.AVOID, 0), ("222", Status.SAFE, 0), ("333", Status.MAYBE, 1)],
)
def test_advisory_consulted_only_for_maybe(source, code, heuristic_status, expected_calls):
    advisory = FakeAdvisory()
    outcome = make(source, advisory).classify_sync(code)
    assert advisory.calls == expected_calls
    assert outcome.advisory_consulted is bool(expected_calls)
    if not expected_calls:
        assert outcome.verdict.status == heuristic_status


def test_merge_takes_advisory_status_and_appends_notes(source):
    outcome = make(source, FakeAdvisory(AdvisoryOk(status=Status.SAFE, notes=("X",)))).classify_sync("333")
    assert outcome.verdict.status == Status.SAFE
    assert outcome.verdict.notes[-1] == "X"
    assert outcome.verdict.notes[0].startswith("No risky allergens found")
    assert outcome.verdict.source == "merged"


def test_advisory_failure_keeps_heuristic_verdict(source, degraded):
    outcome = make(source, FakeAdvisory(degraded)).classify_sync("333")
    assert outcome.ok
    assert outcome.verdict.status == Status.MAYBE
    assert outcome.verdict.notes[-1] == degraded.notes[0]
    assert len(outcome.verdict.notes) == 2


def test_merge_verdicts_default_note_when_advisory_sends_none():
    base = ClassificationVerdict(status=Status.MAYBE, notes=("base",))
    merged = merge_verdicts(base, AdvisoryOk(status=Status.AVOID))
    assert merged.status == Status.AVOID
    assert merged.notes == ("base", "Refined by the advisory assessment.")


def test_merge_verdicts_degraded_is_base_plus_note():
    base = ClassificationVerdict(status=Status.MAYBE, notes=("base",))
    merged = merge_verdicts(base, AdvisoryDegraded(notes=("down",)))
    assert merged == ClassificationVerdict(status=Status.MAYBE, notes=("base", "down"))


def test_success_writes_one_history_entry(source):
    history = HistoryStore()
    outcome = make(source, FakeAdvisory(), history).classify_sync("111")
    entries = history.entries()
    assert len(entries) == 1
    assert entries[0] == outcome.history_entry
    assert entries[0].brand == "Choco"
    assert entries[0].name == "Milk chocolate"
    assert entries[0].status == Status.AVOID
    assert entries[0].timestamp == 1000.0


def test_history_records_merged_status(source):
    history = HistoryStore()
    make(source, FakeAdvisory(AdvisoryOk(status=Status.AVOID, notes=("y",))), history).classify_sync("333")
    assert history.entries()[0].status == Status.AVOID


def test_not_found_skips_heuristic_and_history(source):
    history = HistoryStore()
    advisory = FakeAdvisory()
    outcome = make(source, advisory, history).classify_sync("000")
    assert outcome.error == ErrorKind.NOT_FOUND
    assert outcome.verdict is None
    assert outcome.message.startswith("Product not found")
    assert advisory.calls == 0
    assert history.entries() == []


def test_not_found_can_ask_advisory_only(source):
    advisory = FakeAdvisory(AdvisoryOk(status=Status.MAYBE, notes=("guess",)))
    outcome = make(source, advisory, advisory_on_not_found=True).classify_sync("000")
    assert outcome.error == ErrorKind.NOT_FOUND
    assert outcome.verdict.status == Status.MAYBE
    assert outcome.verdict.notes[-1] == "guess"
    assert advisory.requests[0].name == ""


def test_not_found_advisory_failure_still_maybe(source, degraded):
    outcome = make(source, FakeAdvisory(degraded), advisory_on_not_found=True).classify_sync("000")
    assert outcome.verdict.status == Status.MAYBE


def test_transport_error_is_reported_without_history():
    history = HistoryStore()
    outcome = make(FakeSource(transport_error=True), FakeAdvisory(), history).classify_sync("111")
    assert outcome.error == ErrorKind.TRANSPORT
    assert not outcome.ok
    assert history.entries() == []


def test_blank_code_is_invalid(source):
    outcome = make(source).classify_sync("   ")
    assert outcome.error == ErrorKind.INVALID_CODE
    assert source.calls == []


def test_code_is_stripped(source):
    assert make(source).classify_sync(" 111 \n").ok
    assert source.calls == ["111"]


def test_without_advisory_maybe_stays_maybe(source):
    outcome = make(source).classify_sync("333")
    assert outcome.verdict.status == Status.MAYBE
    assert not outcome.advisory_consulted


def test_sk_notes(source):
    outcome = make(source, lang="sk").classify_sync("111")
    assert outcome.verdict.notes[0].startswith("Obsahuje mliečnu bielkovinu")


def test_session_debounce():
    now = [0.0]
    session = ScanSession(make(FakeSource()), debounce_seconds=1.2, clock=lambda: now[0])
    assert session.accept("111")
    now[0] = 0.5
    assert not session.accept("111")
    assert session.accept("222")
    now[0] = 2.0
    assert session.accept("111")
    assert not session.accept("  ")


class GatedSource(FakeSource):
    """Blocks lookups of 'slow' until the gate opens."""

    def __init__(self, products):
        super().__init__(products)
        self.gate = threading.Event()

    def get_product(self, code):
        if code == "slow":
            self.gate.wait(timeout=5)
        return super().get_product(code)


def test_session_last_write_wins(products):
    products["slow"] = dict(products["333"])
    source = GatedSource(products)
    history = HistoryStore()
    session = ScanSession(make(source, history=history))

    async def scenario():
        first = asyncio.ensure_future(session.submit("slow"))
        await asyncio.sleep(0.05)
        second = await session.submit("111")
        source.gate.set()
        return await first, second

    first, second = asyncio.run(scenario())
    assert first is None
    assert second.code == "111"
    assert session.latest is second
    assert [entry.code for entry in history.entries()] == ["111"]


def test_session_cancel_discards_run(products):
    products["slow"] = dict(products["333"])
    source = GatedSource(products)
    session = ScanSession(make(source))

    async def scenario():
        pending = asyncio.ensure_future(session.submit("slow"))
        await asyncio.sleep(0.05)
        assert session.in_flight
        session.cancel()
        source.gate.set()
        return await pending

    assert asyncio.run(scenario()) is None
    assert session.latest is None


def test_history_write_failure_still_returns_verdict(source, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    history = HistoryStore(blocker / "history.csv")
    outcome = make(source, history=history).classify_sync("111")
    assert outcome.ok
    assert outcome.verdict.status == Status.AVOID
    assert outcome.history_entry.code == "111"


class SlowAdvisory(FakeAdvisory):
    timeout = 0.05

    def consult(self, request):
        time.sleep(0.5)
        return super().consult(request)


def test_slow_advisory_is_cut_off_at_timeout(source):
    started = time.monotonic()
    outcome = make(source, SlowAdvisory(AdvisoryOk(status=Status.AVOID, notes=()))).classify_sync("333")
    assert outcome.verdict.status == Status.MAYBE
    assert outcome.verdict.notes[-1] == "Advisory assessment timed out; keeping the local result."
    assert outcome.advisory_consulted
    assert time.monotonic() - started < 2
