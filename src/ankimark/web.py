from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path

from fastapi import Body, FastAPI, HTTPException
from fastapi.responses import JSONResponse

from .anki import AnkiConnectClient, AnkiConnectError, AnkiConnectUnavailableError
from .classify import PageStats
from .document import PageDocument
from .pipeline import AnalysisResult, VocabularyEngine
from .settings import SETTINGS_FILENAME, EngineConfig, SettingsStore


@dataclass(slots=True)
class WebConfig:
    settings_path: Path = field(default_factory=lambda: Path.home() / SETTINGS_FILENAME)
    engine: EngineConfig = field(default_factory=EngineConfig)


def _require_str(payload: dict[str, object], key: str, *, allow_empty: bool = False) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or (not allow_empty and not value.strip()):
        raise HTTPException(status_code=400, detail=f"{key} is required.")
    return value


def _optional_str(payload: dict[str, object], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"{key} must be a string or null.")
    return value


def create_app(config: WebConfig, *, client: AnkiConnectClient | None = None) -> FastAPI:
    engine_config = config.engine
    if client is None:
        client = AnkiConnectClient(
            engine_config.resolved_anki_url(),
            timeout=engine_config.request_timeout,
            version=engine_config.anki_version,
        )
    store = SettingsStore(config.settings_path)
    stored = store.load()

    broadcast_lock = threading.Lock()
    last_broadcast: dict[str, object] = {"stats": None}

    def _record_stats(stats: PageStats) -> None:
        with broadcast_lock:
            last_broadcast["stats"] = engine.stats_payload(stats)

    engine = VocabularyEngine(client, engine_config, on_stats=_record_stats)
    engine.state.enabled = stored.is_enabled
    engine.state.deck = stored.selected_deck

    app = FastAPI(title="ankimark")
    app.state.config = config
    app.state.engine = engine
    app.state.settings_store = store
    # One page pipeline at a time; analyses mutate the shared engine state.
    analysis_lock = threading.Lock()

    def _page_payload(result: AnalysisResult | None, document: PageDocument) -> dict[str, object]:
        return {
            "stats": engine.stats_payload(result.stats) if result is not None else None,
            "from_cache": bool(result and result.from_cache),
            "html": document.html(),
        }

    @app.get("/api/status")
    def api_status() -> JSONResponse:
        try:
            decks = client.deck_names()
        except (AnkiConnectError, AnkiConnectUnavailableError) as exc:
            return JSONResponse({"connected": False, "decks": [], "error": str(exc)})
        return JSONResponse({"connected": True, "decks": decks, "error": None})

    @app.get("/api/settings")
    def api_settings() -> JSONResponse:
        current = store.load()
        return JSONResponse(
            {"is_enabled": current.is_enabled, "selected_deck": current.selected_deck}
        )

    @app.post("/api/toggle")
    def api_toggle(payload: dict[str, object] = Body(...)) -> JSONResponse:
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid payload.")
        enabled = payload.get("enabled")
        if not isinstance(enabled, bool):
            raise HTTPException(status_code=400, detail="enabled must be a boolean.")
        deck = _optional_str(payload, "deck")
        url = _optional_str(payload, "url")
        html = _optional_str(payload, "html")
        document = PageDocument.from_html(html) if html is not None else None
        settings = store.update(is_enabled=enabled, selected_deck=deck)
        with analysis_lock:
            result = engine.set_enabled(enabled, deck, url=url, document=document)
        body: dict[str, object] = {
            "is_enabled": settings.is_enabled,
            "selected_deck": settings.selected_deck,
        }
        if document is not None:
            body.update(_page_payload(result, document))
        return JSONResponse(body)

    @app.post("/api/analyze")
    def api_analyze(payload: dict[str, object] = Body(...)) -> JSONResponse:
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid payload.")
        url = _require_str(payload, "url")
        html = _require_str(payload, "html", allow_empty=True)
        force = payload.get("force", False)
        if not isinstance(force, bool):
            raise HTTPException(status_code=400, detail="force must be a boolean.")
        document = PageDocument.from_html(html)
        with analysis_lock:
            result = engine.analyze(url, document, force=force)
        return JSONResponse(_page_payload(result, document))

    @app.post("/api/navigate")
    def api_navigate(payload: dict[str, object] = Body(...)) -> JSONResponse:
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid payload.")
        url = _require_str(payload, "url")
        html = _optional_str(payload, "html")
        document = PageDocument.from_html(html) if html is not None else None
        with analysis_lock:
            result = engine.navigate(url, document)
        if document is None:
            return JSONResponse({"stats": None, "from_cache": False, "html": None})
        return JSONResponse(_page_payload(result, document))

    @app.get("/api/stats")
    def api_stats() -> JSONResponse:
        stats = engine.current_stats()
        with broadcast_lock:
            broadcast = last_broadcast["stats"]
        return JSONResponse(
            {
                "stats": engine.stats_payload(stats) if stats is not None else None,
                "last_broadcast": broadcast,
            }
        )

    return app
