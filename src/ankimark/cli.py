from __future__ import annotations

import argparse
import sys
from importlib import metadata
from pathlib import Path

import uvicorn
from rich.console import Console
from rich.table import Table

from .anki import AnkiConnectClient, AnkiConnectError, AnkiConnectUnavailableError
from .document import PageDocument
from .logging_utils import set_debug_logging
from .pipeline import VocabularyEngine
from .script import detect_script
from .segment import tokenize
from .settings import SETTINGS_FILENAME, EngineConfig, load_config
from .web import WebConfig, create_app

try:
    __version__ = metadata.version("ankimark")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0+unknown"


def _add_version_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"ankimark {__version__}",
    )


def _add_engine_flags(ap: argparse.ArgumentParser) -> None:
    ap.add_argument(
        "--config",
        help="Optional TOML file with an [ankimark] table of engine settings.",
    )
    ap.add_argument(
        "--anki-url",
        help="AnkiConnect endpoint (default: $ANKIMARK_ANKI_URL or http://127.0.0.1:8765).",
    )
    ap.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug logging (AnkiConnect calls, reconcile passes).",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description=(
            "Mark the words of a page as known, unknown or new against an Anki deck. "
            "Subcommands: annotate, decks, tokenize, web."
        ),
    )
    _add_version_flag(ap)
    return ap


def build_annotate_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Annotate an HTML page with deck knowledge markers and print page stats.",
    )
    _add_version_flag(ap)
    ap.add_argument("input_path", help="Path to the .html page to annotate.")
    ap.add_argument("-d", "--deck", required=True, help="Name of the Anki deck to match against.")
    ap.add_argument(
        "-o",
        "--output",
        help="Where to write the annotated page (default: <name>.annotated.html next to the input).",
    )
    ap.add_argument(
        "--url",
        help="Page address used as the cache key (default: the input file URI).",
    )
    ap.add_argument(
        "--no-readings",
        action="store_true",
        help="Match surface forms only; skip the reading field in queries and matching.",
    )
    ap.add_argument(
        "--mark-new",
        action="store_true",
        help="Wrap words missing from the deck in a marker as well.",
    )
    ap.add_argument(
        "--no-percentage",
        action="store_true",
        help="Leave the deck percentage out of the reported stats.",
    )
    ap.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Concurrent findCards requests (default: 1).",
    )
    ap.add_argument(
        "--stats-only",
        action="store_true",
        help="Print stats without writing an annotated page.",
    )
    _add_engine_flags(ap)
    return ap


def build_decks_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="List the decks AnkiConnect reports.")
    _add_version_flag(ap)
    _add_engine_flags(ap)
    return ap


def build_tokenize_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Show how text is split into tokens.")
    _add_version_flag(ap)
    ap.add_argument(
        "text",
        nargs="+",
        help="Text to tokenize. Wrap the phrase in quotes if it contains spaces.",
    )
    ap.add_argument(
        "--han-as-chinese",
        action="store_true",
        help="Treat Han-only text as Chinese instead of Japanese.",
    )
    return ap


def build_web_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Serve the ankimark control API over HTTP.")
    _add_version_flag(ap)
    ap.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1).")
    ap.add_argument("--port", type=int, default=8766, help="Port to listen on (default: 8766).")
    ap.add_argument(
        "--settings",
        help=f"Settings file for the toggle and selected deck (default: ~/{SETTINGS_FILENAME}).",
    )
    _add_engine_flags(ap)
    return ap


def _engine_config(args: argparse.Namespace, **overrides: object) -> EngineConfig:
    config_path = Path(args.config).expanduser() if getattr(args, "config", None) else None
    try:
        return load_config(config_path, anki_url=getattr(args, "anki_url", None), **overrides)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc


def _client_for(config: EngineConfig) -> AnkiConnectClient:
    return AnkiConnectClient(
        config.resolved_anki_url(),
        timeout=config.request_timeout,
        version=config.anki_version,
    )


def _stats_table(payload: dict[str, int], deck: str) -> Table:
    table = Table(title=f"Deck: {deck}")
    table.add_column("Class")
    table.add_column("Words", justify="right")
    for key in ("known", "unknown", "new"):
        table.add_row(key, str(payload[key]))
    if "deckPercentage" in payload:
        table.add_row("in deck", f"{payload['deckPercentage']}%")
    return table


def _run_annotate(args: argparse.Namespace) -> int:
    set_debug_logging(bool(args.debug))
    console = Console()
    err_console = Console(stderr=True)
    input_path = Path(args.input_path).expanduser()
    if not input_path.is_file():
        raise SystemExit(f"Input page not found: {input_path}")
    overrides: dict[str, object] = {"query_workers": args.workers}
    if args.no_readings:
        overrides["use_readings"] = False
    if args.mark_new:
        overrides["mark_new"] = True
    if args.no_percentage:
        overrides["report_percentage"] = False
    config = _engine_config(args, **overrides)

    document = PageDocument.from_html(input_path.read_text(encoding="utf-8"))
    url = args.url or input_path.resolve().as_uri()
    client = _client_for(config)
    try:
        engine = VocabularyEngine(client, config)
        result = engine.set_enabled(True, args.deck, url=url, document=document)
    finally:
        client.close()
    if result is None:
        err_console.print("[red]Analysis produced no result.[/red]")
        return 1
    if result.fetch is not None:
        for error in result.fetch.errors:
            err_console.print(f"[yellow]warning:[/yellow] {error}")
    console.print(_stats_table(engine.stats_payload(result.stats), args.deck))

    if args.stats_only:
        return 0
    if args.output:
        output_path = Path(args.output).expanduser()
    else:
        output_path = input_path.with_name(f"{input_path.stem}.annotated.html")
    output_path.write_text(document.html(), encoding="utf-8")
    console.print(f"Wrote {output_path}")
    return 0


def _run_decks(args: argparse.Namespace) -> int:
    set_debug_logging(bool(args.debug))
    config = _engine_config(args)
    client = _client_for(config)
    try:
        decks = client.deck_names()
    except (AnkiConnectError, AnkiConnectUnavailableError) as exc:
        Console(stderr=True).print(f"[red]Error:[/red] {exc}")
        return 1
    finally:
        client.close()
    for deck in decks:
        print(deck)
    return 0


def _run_tokenize(args: argparse.Namespace) -> int:
    text = " ".join(args.text).strip()
    if not text:
        raise SystemExit("No text provided for tokenization.")
    tag = detect_script(text, han_as_chinese=args.han_as_chinese)
    print(f"script: {tag.value}")
    for token in tokenize(text, han_as_chinese=args.han_as_chinese):
        print(token)
    return 0


def _run_web(args: argparse.Namespace) -> None:
    set_debug_logging(bool(args.debug))
    config = _engine_config(args)
    web_config = WebConfig(engine=config)
    if args.settings:
        web_config.settings_path = Path(args.settings).expanduser()
    app = create_app(web_config)
    print(f"Serving ankimark on http://{args.host}:{args.port}/")
    print(f"AnkiConnect: {config.resolved_anki_url()}")
    print("Press Ctrl+C to stop.\n")
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0] == "annotate":
        return _run_annotate(build_annotate_parser().parse_args(argv[1:]))
    if argv and argv[0] == "decks":
        return _run_decks(build_decks_parser().parse_args(argv[1:]))
    if argv and argv[0] == "tokenize":
        return _run_tokenize(build_tokenize_parser().parse_args(argv[1:]))
    if argv and argv[0] == "web":
        _run_web(build_web_parser().parse_args(argv[1:]))
        return 0

    parser = build_parser()
    if not argv:
        parser.print_help()
        return 0
    parser.parse_args(argv)
    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
