from __future__ import annotations

import pytest

from ankimark import cli


def test_tokenize_prints_script_and_tokens(capsys) -> None:
    assert cli.main(["tokenize", "猫、犬。"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out == ["script: ja", "猫", "犬"]


def test_tokenize_han_as_chinese(capsys) -> None:
    assert cli.main(["tokenize", "--han-as-chinese", "学习历史"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "script: zh"


def test_tokenize_latin_text(capsys) -> None:
    assert cli.main(["tokenize", "Hello,", "World!"]) == 0
    assert capsys.readouterr().out.splitlines() == ["script: other", "hello", "world"]


def test_annotate_writes_marked_page(tmp_path, monkeypatch, fake_client, card, capsys) -> None:
    client = fake_client([card(1, "猫", 30), card(2, "犬", 2)])
    monkeypatch.setattr(cli, "_client_for", lambda config: client)
    page = tmp_path / "page.html"
    page.write_text("<html><body><p>猫、犬、鳥。</p></body></html>", encoding="utf-8")

    assert cli.main(["annotate", str(page), "--deck", "Default"]) == 0

    output = tmp_path / "page.annotated.html"
    html = output.read_text(encoding="utf-8")
    assert '<span class="anki-highlight-known">猫</span>' in html
    assert '<span class="anki-highlight-unknown">犬</span>' in html
    assert "anki-highlight-new" not in html
    assert client.closed is True
    assert "Deck: Default" in capsys.readouterr().out


def test_annotate_stats_only_skips_output(tmp_path, monkeypatch, fake_client, card) -> None:
    client = fake_client([card(1, "猫", 30)])
    monkeypatch.setattr(cli, "_client_for", lambda config: client)
    page = tmp_path / "page.html"
    page.write_text("<html><body><p>猫</p></body></html>", encoding="utf-8")

    assert cli.main(["annotate", str(page), "-d", "Default", "--stats-only"]) == 0
    assert not (tmp_path / "page.annotated.html").exists()


def test_annotate_missing_input(tmp_path) -> None:
    with pytest.raises(SystemExit):
        cli.main(["annotate", str(tmp_path / "missing.html"), "-d", "Default"])


def test_decks_lists_names(monkeypatch, fake_client, capsys) -> None:
    client = fake_client(decks=["Default", "日本語::Core"])
    monkeypatch.setattr(cli, "_client_for", lambda config: client)
    assert cli.main(["decks"]) == 0
    assert capsys.readouterr().out.splitlines() == ["Default", "日本語::Core"]


def test_decks_reports_unreachable_store(monkeypatch, fake_client) -> None:
    client = fake_client()
    client.unreachable = True
    monkeypatch.setattr(cli, "_client_for", lambda config: client)
    assert cli.main(["decks"]) == 1
    assert client.closed is True


def test_unknown_command_prints_help(capsys) -> None:
    assert cli.main([]) == 0
    assert "annotate" in capsys.readouterr().out


def test_web_runs_uvicorn_with_default_logging(tmp_path, monkeypatch) -> None:
    calls: list[dict[str, object]] = []

    def _fake_run(app, **kwargs) -> None:
        calls.append({"app": app, **kwargs})

    monkeypatch.setattr(cli.uvicorn, "run", _fake_run)
    settings = tmp_path / "settings.json"

    assert cli.main(["web", "--port", "9001", "--settings", str(settings)]) == 0

    (call,) = calls
    assert call["host"] == "127.0.0.1"
    assert call["port"] == 9001
    assert call["log_level"] == "info"
    assert "log_config" not in call
    assert call["app"].state.config.settings_path == settings


def test_debug_flag_prints_debug_lines(monkeypatch, fake_client, capsys) -> None:
    from ankimark import logging_utils

    client = fake_client(decks=["Default"])
    monkeypatch.setattr(cli, "_client_for", lambda config: client)
    monkeypatch.setattr(logging_utils, "_DEBUG_LOG", False)
    assert cli.main(["decks", "--debug"]) == 0
    logging_utils.debug_log("reconciled 0 segments")
    assert "[ankimark debug] reconciled 0 segments" in capsys.readouterr().out
