"""Main FastAPI application entry point."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from weather_chat.config import settings
import logging

from weather_chat.api.chat import router as chat_router

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Logs application startup and shutdown."""
    logger.info(f"Starting Weather Chat API ({settings.environment})")
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; /api/chat will return errors")
    if not settings.verify_tls:
        logger.warning("TLS verification is relaxed for outbound weather requests")

    yield

    logger.info("Shutting down Weather Chat API")


app = FastAPI(
    title="Weather Chat API",
    description="Streaming chat with a Gemini model and a weather lookup tool",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat_router)


@app.get("/")
async def root():
    """Provides basic information about the running API and its features."""
    return {
        "message": "Weather Chat API",
        "status": "running",
        "model": settings.gemini_model,
        "features": {
            "weather_tool": settings.enable_weather_tool,
        },
    }


@app.get("/health")
async def health_check():
    """Performs a health check of the API and its configuration."""
    return {
        "status": "healthy",
        "api_key_configured": bool(settings.gemini_api_key),
    }
