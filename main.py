"""FastAPI extraction wizard service.

Drives the Upload -> Define Schema -> Results wizard for a browser front end
and forwards documents to the Gemini extraction service.
Documents are kept in memory only and never logged.
"""

import logging
from contextlib import asynccontextmanager
from functools import partial

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from config import settings
from export import ExportFormat, encode
from extraction import extract
from gemini_client import GeminiClient
from models import FieldUpdate, SchemaField, SessionView
from uploads import FileTooLargeError, UnsupportedFileError, read_upload
from wizard import SessionNotFound, SessionStore, Wizard, WizardError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the extraction client and the session store."""
    client = GeminiClient()
    if not client.configured:
        logger.warning("API_KEY is not set, extractions will fail until it is configured")
    else:
        logger.info("Extraction service model: %s", client.model)

    app.state.gemini_client = client
    app.state.extractor = partial(extract, client=client)
    app.state.sessions = SessionStore()

    yield

    client.close()


app = FastAPI(title="DocuForge Extraction Wizard", version="1.0.0", lifespan=lifespan)


@app.exception_handler(SessionNotFound)
async def session_not_found(request: Request, exc: SessionNotFound):
    return JSONResponse(status_code=404, content={"detail": f"Session not found: {exc}"})


@app.exception_handler(WizardError)
async def wizard_error(request: Request, exc: WizardError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def _wizard(request: Request, session_id: str) -> Wizard:
    return request.app.state.sessions.get(session_id)


def _field_not_found(field_id: str) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": f"Field not found: {field_id}"})


@app.post("/api/v1/sessions", response_model=SessionView, status_code=201)
async def create_session(request: Request):
    """Start a new wizard session with the default fields."""
    wizard = request.app.state.sessions.create()
    return wizard.view()


@app.get("/api/v1/sessions/{session_id}", response_model=SessionView)
async def get_session(session_id: str, request: Request):
    return _wizard(request, session_id).view()


@app.delete("/api/v1/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str, request: Request):
    request.app.state.sessions.delete(session_id)
    return Response(status_code=204)


@app.put("/api/v1/sessions/{session_id}/file", response_model=SessionView)
async def upload_file(session_id: str, request: Request, file: UploadFile = File(...)):
    """Replace the session's document with the uploaded file."""
    wizard = _wizard(request, session_id)
    content = await file.read()

    if not content:
        return JSONResponse(status_code=400, content={"detail": "Empty file uploaded"})

    try:
        uploaded = read_upload(file.filename or "upload", file.content_type, content)
    except FileTooLargeError as e:
        return JSONResponse(status_code=413, content={"detail": str(e)})
    except UnsupportedFileError as e:
        return JSONResponse(status_code=415, content={"detail": str(e)})

    wizard.set_file(uploaded)
    return wizard.view()


@app.delete("/api/v1/sessions/{session_id}/file", response_model=SessionView)
async def clear_file(session_id: str, request: Request):
    wizard = _wizard(request, session_id)
    wizard.clear_file()
    return wizard.view()


@app.post("/api/v1/sessions/{session_id}/fields", response_model=SchemaField, status_code=201)
async def add_field(session_id: str, request: Request):
    """Append an empty STRING field."""
    return _wizard(request, session_id).add_field()


@app.patch("/api/v1/sessions/{session_id}/fields/{field_id}", response_model=SchemaField)
async def update_field(session_id: str, field_id: str, update: FieldUpdate, request: Request):
    wizard = _wizard(request, session_id)
    try:
        return wizard.update_field(field_id, update)
    except KeyError:
        return _field_not_found(field_id)


@app.delete("/api/v1/sessions/{session_id}/fields/{field_id}", response_model=SessionView)
async def remove_field(session_id: str, field_id: str, request: Request):
    wizard = _wizard(request, session_id)
    try:
        wizard.remove_field(field_id)
    except KeyError:
        return _field_not_found(field_id)
    return wizard.view()


@app.post("/api/v1/sessions/{session_id}/continue", response_model=SessionView)
async def continue_step(session_id: str, request: Request):
    wizard = _wizard(request, session_id)
    wizard.advance()
    return wizard.view()


@app.post("/api/v1/sessions/{session_id}/back", response_model=SessionView)
async def back_step(session_id: str, request: Request):
    wizard = _wizard(request, session_id)
    wizard.back()
    return wizard.view()


@app.post("/api/v1/sessions/{session_id}/extract", response_model=SessionView)
async def run_extraction(session_id: str, request: Request):
    """Run one extraction. Failures come back as status=error with a message."""
    wizard = _wizard(request, session_id)
    await wizard.run_extraction(request.app.state.extractor)
    return wizard.view()


@app.post("/api/v1/sessions/{session_id}/reset", response_model=SessionView)
async def reset_session(session_id: str, request: Request):
    wizard = _wizard(request, session_id)
    wizard.reset()
    return wizard.view()


@app.get("/api/v1/sessions/{session_id}/export/{fmt}")
async def export_result(session_id: str, fmt: ExportFormat, request: Request):
    """Download the last result as extracted_data.<fmt>."""
    wizard = _wizard(request, session_id)
    if wizard.result is None:
        return JSONResponse(status_code=409, content={"detail": "No extraction result to export"})

    return Response(
        content=encode(wizard.result, fmt),
        media_type=fmt.media_type,
        headers={"Content-Disposition": f'attachment; filename="{fmt.filename}"'},
    )


@app.get("/api/v1/sessions/{session_id}/clipboard", response_class=PlainTextResponse)
async def clipboard_text(session_id: str, request: Request):
    """Pretty-printed JSON of the last result, for copy-to-clipboard."""
    wizard = _wizard(request, session_id)
    if wizard.result is None:
        return JSONResponse(status_code=409, content={"detail": "No extraction result to copy"})
    return PlainTextResponse(encode(wizard.result, ExportFormat.JSON))


@app.get("/health")
async def health(request: Request):
    """Return service status and whether the extraction credential is set."""
    client: GeminiClient = request.app.state.gemini_client
    base = {
        "status": "healthy",
        "extraction_configured": client.configured,
        "sessions": len(request.app.state.sessions),
    }

    if client.configured:
        base["extraction_service"] = client.health()

    return base


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
