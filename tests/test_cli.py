import json

import pytest

import main
from conftest import FakeAdvisory, FakeSource
from safescan import ClassificationOrchestrator, HistoryStore, Settings


@pytest.fixture
def settings(tmp_path):
    return Settings(history_path=str(tmp_path / "history.csv"))


def orchestrator_for(source, settings, lang="en"):
    return ClassificationOrchestrator(
        source,
        advisory=FakeAdvisory(),
        history=HistoryStore(settings.history_path),
        lang=lang,
    )


def test_text_report(source, settings, capsys):
    args = main.parse_args(["--code", "111"])
    assert main.run(args, orchestrator_for(source, settings), settings) == 0
    out = capsys.readouterr().out
    assert "Verdict: AVOID" in out
    assert "Brand: Choco" in out
    assert "Declared allergens: milk" in out


def test_json_report(source, settings, capsys):
    args = main.parse_args(["--code", "333", "--format", "json"])
    assert main.run(args, orchestrator_for(source, settings), settings) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["verdict"]["status"] == "safe"
    assert payload["advisory_consulted"] is True
    assert payload["error"] is None


def test_not_found_exit_code(source, settings, capsys):
    args = main.parse_args(["--code", "000", "--lang", "sk"])
    assert main.run(args, orchestrator_for(source, settings, lang="sk"), settings) == 1
    assert "Produkt sa nenašiel" in capsys.readouterr().out


def test_transport_exit_code(settings):
    args = main.parse_args(["--code", "111"])
    assert main.run(args, orchestrator_for(FakeSource(transport_error=True), settings), settings) == 2


def test_show_history(source, settings, capsys):
    main.run(main.parse_args(["--code", "222"]), orchestrator_for(source, settings), settings)
    capsys.readouterr()
    assert main.run(main.parse_args(["--show-history"]), settings=settings) == 0
    out = capsys.readouterr().out
    assert "SAFE" in out
    assert "Rice crackers (Crunch · 222)" in out


def test_flags_override_settings(settings):
    args = main.parse_args(["--code", "1", "--lang", "sk", "--advisory-url", "http://x", "--no-advisory"])
    merged = main.settings_from_args(args, base=settings)
    assert merged.lang == "sk"
    assert merged.advisory_url == ""


def test_code_required_without_history():
    with pytest.raises(SystemExit):
        main.parse_args([])
