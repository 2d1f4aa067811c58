"""Client for streaming chat completions from the Google Gemini LLM."""

import google.generativeai as genai
from weather_chat.config import settings
from weather_chat.core.weather_tool import ToolDefinition
from weather_chat.models.chat import (
    ChatMessage,
    ContentChunk,
    DoneChunk,
    StreamChunk,
    ToolCallChunk,
    ToolResultChunk,
)
from collections.abc import Iterable, Mapping
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple
import logging
import uuid

logger = logging.getLogger(__name__)

_configured_api_key: Optional[str] = None


def configure_gemini(api_key: str) -> None:
    """Configures the SDK once per distinct key."""
    global _configured_api_key
    if api_key == _configured_api_key:
        return
    genai.configure(api_key=api_key)
    _configured_api_key = api_key


_JSON_TYPES = {
    "string": genai.protos.Type.STRING,
    "number": genai.protos.Type.NUMBER,
    "integer": genai.protos.Type.INTEGER,
    "boolean": genai.protos.Type.BOOLEAN,
    "object": genai.protos.Type.OBJECT,
    "array": genai.protos.Type.ARRAY,
}


def _resolve_ref(prop: Dict[str, Any], defs: Dict[str, Any]) -> Dict[str, Any]:
    ref = prop.get("$ref")
    if ref is None and len(prop.get("allOf", [])) == 1:
        ref = prop["allOf"][0].get("$ref")
    if ref is None:
        return prop
    resolved = dict(defs[ref.rsplit("/", 1)[-1]])
    resolved.update({k: v for k, v in prop.items() if k not in ("$ref", "allOf")})
    return resolved


def _property_schema(prop: Dict[str, Any]) -> genai.protos.Schema:
    schema = genai.protos.Schema(
        type_=_JSON_TYPES.get(prop.get("type", "string"), genai.protos.Type.STRING)
    )
    if prop.get("description"):
        schema.description = prop["description"]
    if prop.get("enum"):
        schema.format_ = "enum"
        schema.enum.extend(str(v) for v in prop["enum"])
    return schema


def to_function_declaration(tool: ToolDefinition) -> genai.protos.FunctionDeclaration:
    """Translates a tool's pydantic input model into a Gemini function declaration."""
    json_schema = tool.input_model.model_json_schema()
    defs = json_schema.get("$defs", {})
    properties = {
        name: _property_schema(_resolve_ref(prop, defs))
        for name, prop in json_schema.get("properties", {}).items()
    }
    return genai.protos.FunctionDeclaration(
        name=tool.name,
        description=tool.description,
        parameters=genai.protos.Schema(
            type_=genai.protos.Type.OBJECT,
            properties=properties,
            required=json_schema.get("required", []),
        ),
    )


def _to_plain(value: Any) -> Any:
    """Unwraps proto map/repeated containers into dicts and lists."""
    if isinstance(value, Mapping):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (str, bytes)):
        return value
    if isinstance(value, Iterable):
        return [_to_plain(v) for v in value]
    return value


def _iter_parts(chunk: Any) -> Iterable[Any]:
    candidates = getattr(chunk, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    return getattr(content, "parts", None) or []


class GeminiClient:
    """A client to handle streaming chat with the Google Gemini API."""

    def __init__(
        self,
        api_key: str,
        model_name: Optional[str] = None,
        tools: Optional[List[ToolDefinition]] = None,
        system_prompt: Optional[str] = None,
        max_iterations: Optional[int] = None,
    ):
        """Initializes the Gemini client and configures the API key."""
        configure_gemini(api_key)
        self.model_name = model_name or settings.gemini_model
        self.tools: Dict[str, ToolDefinition] = {t.name: t for t in tools or []}
        self.system_prompt = (
            settings.system_prompt if system_prompt is None else system_prompt
        )
        self.max_iterations = max(1, max_iterations or settings.max_tool_iterations)

    def _build_model(self, system_instruction: Optional[str]) -> genai.GenerativeModel:
        kwargs: Dict[str, Any] = {}
        if self.tools:
            kwargs["tools"] = [
                genai.protos.Tool(
                    function_declarations=[
                        to_function_declaration(t) for t in self.tools.values()
                    ]
                )
            ]
        return genai.GenerativeModel(
            self.model_name, system_instruction=system_instruction or None, **kwargs
        )

    def _to_contents(
        self, messages: List[ChatMessage]
    ) -> Tuple[Optional[str], List[Any]]:
        """Splits system messages off and maps roles onto Gemini's user/model."""
        system_parts = [self.system_prompt] if self.system_prompt else []
        contents: List[Any] = []
        for message in messages:
            if message.role == "system":
                system_parts.append(message.content)
                continue
            role = "model" if message.role == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": message.content}]})

        system_instruction = "\n\n".join(system_parts) if system_parts else None
        return system_instruction, contents

    async def _run_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        tool = self.tools.get(name)
        if tool is None:
            logger.warning(f"Model requested unknown tool '{name}'")
            return {"error": f"Unknown tool: {name}"}

        logger.info(f"Running tool '{name}' with {arguments}")
        try:
            return await tool.handler(arguments)
        except Exception as e:
            logger.error(f"Tool '{name}' raised: {e}", exc_info=True)
            return {"error": str(e) or f"Tool {name} failed"}

    async def stream_chat(
        self, messages: List[ChatMessage], conversation_id: Optional[str] = None
    ) -> AsyncIterator[StreamChunk]:
        """
        Streams the model's answer as chunks.

        Whenever a turn ends with function calls, the matching tools are run, their
        results are appended to the conversation and the model is asked again, up to
        `max_iterations` model turns.
        """
        meta = {
            "id": f"chat-{uuid.uuid4().hex}",
            "model": self.model_name,
            "conversation_id": conversation_id,
        }
        system_instruction, contents = self._to_contents(messages)
        model = self._build_model(system_instruction)
        accumulated = ""

        for iteration in range(self.max_iterations):
            response = await model.generate_content_async(contents, stream=True)

            turn_text = ""
            calls: List[Tuple[str, Dict[str, Any]]] = []
            async for chunk in response:
                for part in _iter_parts(chunk):
                    function_call = getattr(part, "function_call", None)
                    if function_call is not None and getattr(function_call, "name", ""):
                        calls.append(
                            (function_call.name, _to_plain(function_call.args or {}))
                        )
                        continue
                    text = getattr(part, "text", "") or ""
                    if text:
                        turn_text += text
                        accumulated += text
                        yield ContentChunk(delta=text, content=accumulated, **meta)

            if not calls:
                yield DoneChunk(finish_reason="stop", **meta)
                return

            model_parts = []
            if turn_text:
                model_parts.append(genai.protos.Part(text=turn_text))
            response_parts = []
            for name, arguments in calls:
                call_id = f"call_{uuid.uuid4().hex[:12]}"
                yield ToolCallChunk(
                    tool_call_id=call_id, tool_name=name, arguments=arguments, **meta
                )
                result = await self._run_tool(name, arguments)
                yield ToolResultChunk(
                    tool_call_id=call_id, tool_name=name, result=result, **meta
                )
                model_parts.append(
                    genai.protos.Part(
                        function_call=genai.protos.FunctionCall(name=name, args=arguments)
                    )
                )
                response_parts.append(
                    genai.protos.Part(
                        function_response=genai.protos.FunctionResponse(
                            name=name, response=result
                        )
                    )
                )

            contents.append(genai.protos.Content(role="model", parts=model_parts))
            contents.append(genai.protos.Content(role="user", parts=response_parts))
            logger.debug(f"Tool round {iteration + 1} done, asking the model again")

        logger.warning(f"Stopped after {self.max_iterations} model turns")
        yield DoneChunk(finish_reason="max_iterations", **meta)
