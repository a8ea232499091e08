"""FastAPI shell for AI All Ears (loopback only, one local user)."""

from contextlib import asynccontextmanager
from datetime import date
from typing import Optional
import asyncio
import json
import logging

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from allears.audio import list_input_devices
from allears.catalog import load_catalog
from allears.config import Config
from allears.deepgram import DeepgramRecognizer
from allears.export import brief_filename
from allears.persistence import JsonFileStore, PersistenceGateway
from allears.session import CaptureSession

logger = logging.getLogger(__name__)


# Request models
class DraftUpdate(BaseModel):
    text: str
    cursor: Optional[int] = None


class AnswerUpdate(BaseModel):
    answer: str = ""


class SettingsUpdate(BaseModel):
    lang: Optional[str] = None
    tier: Optional[str] = None
    industry: Optional[str] = None
    consent: Optional[bool] = None
    continuous: Optional[bool] = None
    interim: Optional[bool] = None


class ExportRequest(BaseModel):
    directory: Optional[str] = None


def build_session() -> CaptureSession:
    """Session wired to the configured state file, catalog and Deepgram."""
    catalog = load_catalog(Config.CATALOG_FILE)
    gateway = PersistenceGateway(JsonFileStore(Config.STATE_FILE), debounce_s=Config.SAVE_DEBOUNCE_MS / 1000.0)
    recognizer = DeepgramRecognizer(voice_enabled=catalog.voice_enabled)
    return CaptureSession(catalog, gateway, recognizer=recognizer)


def create_app(session: Optional[CaptureSession] = None) -> FastAPI:
    if session is None:
        session = build_session()
    session.restore()

    for problem in Config.validate():
        logger.info("Config: %s", problem)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        session.shutdown()

    app = FastAPI(title="AI All Ears", lifespan=lifespan)
    app.state.session = session

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def result(ok: bool = True, **extra):
        return {"ok": ok, "message": session.message, **extra}

    @app.get("/state")
    async def get_state():
        """Full snapshot for (re)rendering the UI."""
        return session.snapshot()

    @app.put("/draft")
    async def put_draft(update: DraftUpdate):
        session.edit(update.text, update.cursor)
        return session.snapshot()["draft"]

    @app.post("/draft/undo")
    async def undo_draft():
        ok = session.undo()
        return result(ok, draft=session.snapshot()["draft"])

    @app.post("/draft/clear")
    async def clear_draft():
        session.clear()
        return result(draft=session.snapshot()["draft"])

    @app.post("/draft/insert-preview")
    async def insert_preview():
        ok = session.insert_preview()
        return result(ok, draft=session.snapshot()["draft"])

    @app.put("/answers/{qid}")
    async def put_answer(qid: str, update: AnswerUpdate):
        session.set_answer(qid, update.answer)
        return {"answers": session.settings.answers}

    @app.put("/settings")
    async def put_settings(update: SettingsUpdate):
        session.update_settings(**update.model_dump(exclude_none=True))
        return session.settings.to_dict()

    @app.post("/mic/start")
    async def mic_start():
        ok = session.start_dictation()
        return result(ok, mic=session.snapshot()["mic"])

    @app.post("/mic/stop")
    async def mic_stop():
        session.stop_dictation()
        return result(mic=session.snapshot()["mic"])

    @app.get("/mic/status")
    async def mic_status():
        return session.snapshot()["mic"]

    @app.get("/mic/devices")
    async def mic_devices():
        return list_input_devices()

    @app.post("/brief")
    async def generate_brief():
        brief = session.generate_brief()
        if brief is None:
            return result(False)
        return result(document=session.brief_text, record=session.brief_json)

    @app.get("/brief")
    async def get_brief():
        return {"document": session.brief_text, "record": session.brief_json}

    @app.post("/brief/copy")
    async def copy_brief():
        ok = session.copy_brief()
        return result(ok)

    @app.post("/brief/export")
    async def export_brief(req: ExportRequest):
        path = session.export_brief(req.directory or Config.EXPORT_DIR)
        return result(path is not None, path=str(path) if path else None)

    @app.get("/brief/download")
    async def download_brief():
        if not session.brief_text:
            raise HTTPException(status_code=404, detail="Nothing yet.")
        return Response(
            content=session.brief_text,
            media_type="text/plain; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{brief_filename(date.today())}"'},
        )

    @app.get("/events/stream")
    async def event_stream():
        """Stream draft/preview/status/brief events via Server-Sent Events."""
        queue = session.subscribe()

        async def event_generator():
            try:
                while True:
                    try:
                        event = await asyncio.wait_for(queue.get(), timeout=15.0)
                    except asyncio.TimeoutError:
                        # Send heartbeat to keep connection alive
                        yield ": heartbeat\n\n"
                        continue
                    yield f"data: {json.dumps(event, ensure_ascii=False)}\n\n"
            finally:
                session.unsubscribe(queue)

        return StreamingResponse(
            event_generator(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable buffering for nginx
            }
        )

    return app
