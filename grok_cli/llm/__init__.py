"""Chat completion provider - direct HTTP calls to an OpenAI-compatible API."""

import json
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import httpx

from grok_cli.exceptions import LLMAPIError, LLMError
from grok_cli.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class FunctionCall:
    """Function part of a tool call: name plus JSON-encoded arguments."""

    name: str
    arguments: str = ""


@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the model."""

    id: str
    function: FunctionCall
    type: str = "function"

    @property
    def name(self) -> str:
        return self.function.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "function": {
                "name": self.function.name,
                "arguments": self.function.arguments,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        function = data.get("function") or {}
        arguments = function.get("arguments", "")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        return cls(
            id=str(data.get("id") or ""),
            type=str(data.get("type") or "function"),
            function=FunctionCall(
                name=str(function.get("name") or ""),
                arguments=arguments,
            ),
        )


@dataclass
class Message:
    """A message in the conversation."""

    role: str  # "system", "user", "assistant", "tool"
    content: str | None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Render the message in the chat completions wire shape."""
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        raw_calls = data.get("tool_calls") or None
        return cls(
            role=str(data.get("role") or "assistant"),
            content=data.get("content"),
            tool_calls=[ToolCall.from_dict(tc) for tc in raw_calls] if raw_calls else None,
            tool_call_id=data.get("tool_call_id"),
        )


@dataclass
class Choice:
    """One completion choice."""

    message: Message
    finish_reason: str | None = None


@dataclass
class ChatResponse:
    """Response from the chat completions endpoint."""

    choices: list[Choice] = field(default_factory=list)
    model: str = ""
    usage: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatResponse":
        choices = []
        for raw in data.get("choices") or []:
            message = raw.get("message")
            if not isinstance(message, dict):
                continue
            choices.append(
                Choice(
                    message=Message.from_dict(message),
                    finish_reason=raw.get("finish_reason"),
                )
            )
        return cls(
            choices=choices,
            model=str(data.get("model") or ""),
            usage=dict(data.get("usage") or {}),
        )


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters."""
    return math.ceil(len(text or "") / 4)


def count_message_tokens(messages: list[Message]) -> int:
    """Estimate prompt tokens for a conversation, including tool call payloads."""
    total = 0
    for msg in messages:
        total += 3  # role/separator overhead
        total += estimate_tokens(msg.content or "")
        if msg.tool_calls:
            total += estimate_tokens(json.dumps([tc.to_dict() for tc in msg.tool_calls]))
    return total


class LLMProvider(ABC):
    """Abstract base class for chat providers."""

    model: str = ""

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        search_options: dict[str, Any] | None = None,
    ) -> ChatResponse:
        pass

    @abstractmethod
    def chat_stream(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        search_options: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        pass

    def get_current_model(self) -> str:
        return self.model

    def set_model(self, model: str) -> None:
        self.model = model

    async def close(self) -> None:
        return None


class GrokClient(LLMProvider):
    """Chat completions client for the xAI API (or any compatible endpoint)."""

    def __init__(
        self,
        api_key: str,
        model: str = "grok-code-fast-1",
        base_url: str = "https://api.x.ai/v1",
        temperature: float = 0.7,
        max_tokens: int = 64000,
        timeout: float = 360.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: Bearer token for the API
            model: Default model name
            base_url: API base URL (``/chat/completions`` is appended)
            temperature: Sampling temperature
            max_tokens: Max tokens to generate
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        if not api_key:
            raise LLMError("API key required")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens

        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _build_payload(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None,
        model: str | None,
        search_options: dict[str, Any] | None,
        stream: bool,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": model or self.model,
            "messages": [msg.to_dict() for msg in messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            body["tools"] = tools
            body["tool_choice"] = "auto"
        if search_options and search_options.get("search_parameters"):
            body["search_parameters"] = search_options["search_parameters"]
        if stream:
            body["stream"] = True
        return body

    async def chat(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        search_options: dict[str, Any] | None = None,
    ) -> ChatResponse:
        """Request a complete (non-streamed) response."""
        url = f"{self.base_url}/chat/completions"
        body = self._build_payload(messages, tools, model, search_options, stream=False)

        try:
            log.debug("Calling chat completions", model=body["model"], msg_count=len(messages))
            response = await self.client.post(url, json=body, headers=self._headers())

            if not response.is_success:
                raise LLMAPIError(
                    f"Grok API error: {response.status_code} {response.text}",
                    status_code=response.status_code,
                )

            return ChatResponse.from_dict(response.json())

        except LLMError:
            raise
        except httpx.HTTPError as e:
            raise LLMAPIError(f"Grok API error: {e}")
        except json.JSONDecodeError as e:
            raise LLMError(f"Grok API response decode error: {e}")

    async def chat_stream(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        search_options: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Stream raw delta chunks parsed from the server-sent event stream."""
        url = f"{self.base_url}/chat/completions"
        body = self._build_payload(messages, tools, model, search_options, stream=True)

        try:
            async with self.client.stream("POST", url, json=body, headers=self._headers()) as response:
                if not response.is_success:
                    error_text = (await response.aread()).decode("utf-8", errors="replace")
                    raise LLMAPIError(
                        f"Grok API error: {response.status_code} {error_text}",
                        status_code=response.status_code,
                    )

                async for line in response.aiter_lines():
                    line = line.strip()
                    if not line or not line.startswith("data:"):
                        continue
                    payload = line[len("data:"):].strip()
                    if payload == "[DONE]":
                        break
                    try:
                        yield json.loads(payload)
                    except json.JSONDecodeError:
                        log.debug("Skipping malformed stream line", line=payload[:200])
                        continue

        except LLMError:
            raise
        except httpx.HTTPError as e:
            raise LLMAPIError(f"Grok API error: {e}")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


def create_provider(
    api_key: str,
    model: str = "grok-code-fast-1",
    base_url: str | None = None,
    temperature: float = 0.7,
    max_tokens: int = 64000,
    timeout: float = 360.0,
) -> LLMProvider:
    """Create the chat provider for the configured endpoint."""
    return GrokClient(
        api_key=api_key,
        model=model,
        base_url=base_url or "https://api.x.ai/v1",
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=timeout,
    )


# Global provider instance
_provider: LLMProvider | None = None


def get_provider() -> LLMProvider:
    """Get the global provider instance, building it from config on first use."""
    global _provider
    if _provider is None:
        from grok_cli.config import get_config
        cfg = get_config()
        _provider = create_provider(
            api_key=cfg.api_key,
            model=cfg.model,
            base_url=cfg.base_url,
            temperature=cfg.temperature,
            max_tokens=cfg.max_tokens,
            timeout=cfg.timeout,
        )
    return _provider


def set_provider(provider: LLMProvider | None) -> None:
    """Set the global provider instance."""
    global _provider
    _provider = provider
