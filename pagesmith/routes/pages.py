"""
Page Routes for pagesmith

Every path without a file extension is a page: its prompt file is sent to the
model and the sanitized HTML is streamed back as it is generated. Paths with an
extension are static files from the public directory.

Response headers are committed with the first segment. A failure before any
content becomes a proper 502; a failure after that can only end the stream
early, so the client may receive a partial (but cleaned) document.
"""
import logging
import mimetypes
from pathlib import Path
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, StreamingResponse

from pagesmith.config import get_settings
from pagesmith.errors import FallbackExhausted, PageGenerationError, PromptNotFound
from pagesmith.models.response import ErrorResponse, HealthResponse
from pagesmith.services.page_generator import PageGenerator, get_page_generator
from pagesmith.services.prompt_store import PromptStore, get_prompt_store

logger = logging.getLogger(__name__)

router = APIRouter()

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Content-Type-Options": "nosniff",
    "X-Accel-Buffering": "no",
}


def error_response(request: Request, status_code: int, error: str, detail: str = None) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        detail=detail,
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


def serve_static(path: str) -> FileResponse:
    """Serve a file from the public directory or raise 404."""
    root = Path(get_settings().public_dir).resolve()
    file_path = (root / path).resolve()
    if root not in file_path.parents or not file_path.is_file():
        raise HTTPException(status_code=404, detail=f"File not found: {path}")

    media_type, _ = mimetypes.guess_type(str(file_path))
    return FileResponse(path=file_path, media_type=media_type or "application/octet-stream")


@router.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    settings = get_settings()
    return HealthResponse(backend=settings.ai_backend, model=settings.ai_model)


@router.api_route("/", methods=["GET", "POST"])
@router.api_route("/{page:path}", methods=["GET", "POST"])
async def render_page(
    request: Request,
    page: str = "",
    prompts: PromptStore = Depends(get_prompt_store),
    generator: PageGenerator = Depends(get_page_generator),
):
    """Stream a generated page."""
    if Path(page).suffix:
        if request.method != "GET":
            raise HTTPException(status_code=405, detail="Method not allowed")
        return serve_static(page)

    user_input = ""
    if request.method == "POST":
        user_input = (await request.body()).decode("utf-8", "replace")

    try:
        system_prompt, user_prompt = await prompts.build_prompts(page, user_input)
    except PromptNotFound as e:
        return error_response(request, 404, str(e))

    chat_request = generator.build_request(system_prompt, user_prompt)
    logger.info("Generating /%s with %s", page, chat_request.model)
    if get_settings().debug:
        logger.debug("System prompt: %s", system_prompt)
        logger.debug("User prompt: %s", user_prompt)

    segments = generator.stream_page(chat_request)
    try:
        first = await segments.__anext__()
    except StopAsyncIteration:
        # Empty page: the backend finished without producing anything
        return HTMLResponse(content="", headers=STREAM_HEADERS)
    except FallbackExhausted as e:
        logger.error("Page /%s failed: %s", page, e)
        return error_response(request, 502, "Page generation failed", str(e))

    async def generate_stream() -> AsyncGenerator[str, None]:
        try:
            yield first
            async for segment in segments:
                yield segment
        except PageGenerationError as e:
            logger.error("Page /%s stream ended early: %s", page, e)
        finally:
            await segments.aclose()

    return StreamingResponse(
        generate_stream(),
        media_type="text/html; charset=utf-8",
        headers=STREAM_HEADERS,
    )
