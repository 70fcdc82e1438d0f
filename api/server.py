"""
FastAPI server for thoughtcheck.

Exposes the verification pipeline over HTTP: calculation checks, lookup of
earlier verifications, full verification and pipeline metrics.
"""
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load environment variables from .env file
dotenv_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=dotenv_path)

from api.models import HealthResponse
from api.pipeline import close_pipeline, get_pipeline
from api.routes import verification as verification_routes
from thoughtcheck import __version__
from thoughtcheck.logging_config import get_logger, setup_logging

logger = get_logger(__name__)

START_TIME = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared pipeline on startup and drop it on shutdown."""
    setup_logging()
    await get_pipeline()
    logger.info("API server started")
    yield
    await close_pipeline()
    logger.info("API server stopped")


app = FastAPI(
    title="thoughtcheck API",
    description="Verification pipeline for LLM reasoning thoughts",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("THOUGHTCHECK_CORS_ORIGINS", "*").split(","),
    allow_credentials=False,  # Must be False when allow_origins is ["*"]
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(verification_routes.router)
app.include_router(verification_routes.sessions_router)


@app.get("/", response_model=HealthResponse)
async def health_check():
    """Liveness probe with version and uptime."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        uptime=time.time() - START_TIME,
    )


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.server:app",
        host=os.environ.get("THOUGHTCHECK_HOST", "0.0.0.0"),
        port=int(os.environ.get("THOUGHTCHECK_PORT", "8080")),
        reload=True,
        log_level="info",
    )
