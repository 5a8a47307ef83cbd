"""
pagesmith - Main Application

Serves web pages generated by a language model, streaming sanitized HTML to the
browser while the model is still writing it.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pathlib import Path

from pagesmith import __version__
from pagesmith.config import get_settings
from pagesmith.middleware import RequestContextMiddleware
from pagesmith.routes import router
from pagesmith.services.page_generator import close_page_generator, get_page_generator
from pagesmith.utils.logging import configure_logging
from pagesmith.utils.reasoning import is_reasoning_model

settings = get_settings()
configure_logging(settings.log_level, settings.debug)

app = FastAPI(
    title=settings.app_name,
    description="Web pages streamed from a generative model, cleaned on the fly",
    version=__version__,
    debug=settings.debug
)

# Middleware stack (order matters - last added runs first)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# Mount static files before router
public_path = Path(settings.public_dir)
if public_path.exists():
    app.mount("/static", StaticFiles(directory=str(public_path)), name="static")

# Include page routes
app.include_router(router)


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    # Fail fast on a misconfigured backend rather than on the first request
    get_page_generator()

    print(f"✨ pagesmith v{__version__} starting...")
    print(f"🤖 AI: {settings.ai_backend} / {settings.ai_model} ({settings.api_base})")
    print(f"📁 Prompts: {settings.prompts_dir}")
    if is_reasoning_model(settings.ai_model, settings.reasoning_models):
        print("🧠 Reasoning output will be suppressed for this model")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    await close_page_generator()
    print("✨ pagesmith shutting down...")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pagesmith.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
