"""Streaming chat endpoint proxying conversations to the Gemini model."""

import logging
from typing import AsyncIterator, Callable, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from weather_chat.config import Settings, get_settings
from weather_chat.core.llm_client import GeminiClient
from weather_chat.core.streaming import to_stream_response
from weather_chat.core.weather_api import OpenMeteoClient
from weather_chat.core.weather_tool import make_weather_tool
from weather_chat.models.chat import ChatRequest, ErrorResponse, StreamChunk

# --- Setup ---
router = APIRouter(prefix="/api", tags=["chat"])
logger = logging.getLogger(__name__)

ChatClientFactory = Callable[[Settings], GeminiClient]


def build_chat_client(settings: Settings) -> GeminiClient:
    """Creates a request-scoped Gemini client, with the weather tool if enabled."""
    tools = []
    if settings.enable_weather_tool:
        weather_client = OpenMeteoClient(
            geocoding_base_url=settings.geocoding_base_url,
            forecast_base_url=settings.forecast_base_url,
            verify_tls=settings.verify_tls,
        )
        tools.append(make_weather_tool(weather_client))

    return GeminiClient(
        api_key=settings.gemini_api_key,
        model_name=settings.gemini_model,
        tools=tools,
        system_prompt=settings.system_prompt,
        max_iterations=settings.max_tool_iterations,
    )


def get_chat_client_factory() -> ChatClientFactory:
    return build_chat_client


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content=ErrorResponse(error=message).model_dump()
    )


async def _prepend(
    first: Optional[StreamChunk], rest: AsyncIterator[StreamChunk]
) -> AsyncIterator[StreamChunk]:
    try:
        if first is not None:
            yield first
        async for chunk in rest:
            yield chunk
    finally:
        await rest.aclose()


# --- Main Chat Endpoint ---


@router.post(
    "/chat",
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def chat(
    request: Request,
    settings: Settings = Depends(get_settings),
    client_factory: ChatClientFactory = Depends(get_chat_client_factory),
) -> Response:
    """Streams the model's reply to a conversation as Server-Sent Events."""
    if not settings.gemini_api_key:
        logger.error("Chat request rejected: GEMINI_API_KEY is not set")
        return error_response("GEMINI_API_KEY not configured", 500)

    try:
        chat_request = ChatRequest.model_validate(await request.json())
    except ValueError as e:
        logger.warning(f"Invalid chat request body: {e}")
        return error_response(f"Invalid request body: {e}", 400)

    logger.info(
        f"Chat request for conversation {chat_request.conversation_id}: "
        f"{len(chat_request.messages)} messages"
    )

    # Pull the first chunk here so setup failures still get a JSON error.
    try:
        client = client_factory(settings)
        stream = client.stream_chat(
            chat_request.messages, chat_request.conversation_id
        )
        try:
            first = await stream.__anext__()
        except StopAsyncIteration:
            first = None
    except Exception as e:
        logger.error(f"Error starting chat stream: {e}", exc_info=True)
        return error_response(str(e) or "An error occurred", 500)

    return to_stream_response(_prepend(first, stream))
