# Provider wire protocols: one tagged variant per provider carrying its endpoint, headers, request body
# and line decoder. The streaming client and the orchestrators only see the Provider interface.

import json
from typing import Any, Dict, Optional, Union

from .errors import StreamFault
from .models import Framing, ProviderConfiguration, ProviderName, RequestContext


class _StreamEnd:
    def __repr__(self) -> str:
        return "STREAM_END"


# Returned by decode_line when the provider's terminal sentinel arrives.
STREAM_END = _StreamEnd()

Decoded = Union[None, str, _StreamEnd]


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    """Parse a JSON object; None for anything else (protocol noise is skipped, not fatal)."""
    try:
        obj = json.loads(text)
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def _error_text(obj: Dict[str, Any]) -> str:
    err = obj.get("error")
    if isinstance(err, dict):
        return str(err.get("message") or err.get("type") or err)
    return str(err)


class Provider:
    """
    Base class for a provider wire protocol.

    decode_line() receives one line of the response body (without the newline)
    and returns None to skip it, a str piece to publish, or STREAM_END.
    """

    name: ProviderName
    framing: Framing

    def endpoint(self, config: ProviderConfiguration) -> str:
        raise NotImplementedError

    def headers(self, config: ProviderConfiguration, api_key: str) -> Dict[str, str]:
        raise NotImplementedError

    def body(self, config: ProviderConfiguration, request: RequestContext) -> Dict[str, Any]:
        raise NotImplementedError

    def decode_line(self, line: str) -> Decoded:
        raise NotImplementedError


class SSEProvider(Provider):
    """Delta framing over server-sent events: only `data: ` lines carry payloads."""

    framing = Framing.delta
    data_prefix = "data: "

    def decode_line(self, line: str) -> Decoded:
        if not line.startswith(self.data_prefix):
            return None
        return self.decode_data(line[len(self.data_prefix):].strip())

    def decode_data(self, data: str) -> Decoded:
        raise NotImplementedError


class AnthropicProvider(SSEProvider):
    name = ProviderName.anthropic
    api_version = "2023-06-01"

    def endpoint(self, config: ProviderConfiguration) -> str:
        return f"{config.base_url}/messages"

    def headers(self, config: ProviderConfiguration, api_key: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": self.api_version,
        }

    def body(self, config: ProviderConfiguration, request: RequestContext) -> Dict[str, Any]:
        return {
            "model": config.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "stream": True,
            "system": request.system_prompt,
            "messages": [{"role": "user", "content": request.user_message}],
        }

    def decode_data(self, data: str) -> Decoded:
        event = _loads_object(data)
        if event is None:
            return None
        etype = event.get("type")
        if etype == "message_stop":
            return STREAM_END
        if etype == "error":
            raise StreamFault(f"Provider reported an error: {_error_text(event)}")
        if etype == "content_block_delta":
            delta = event.get("delta")
            if isinstance(delta, dict) and isinstance(delta.get("text"), str):
                return delta["text"]
        return None


class OpenAIProvider(SSEProvider):
    name = ProviderName.openai
    done_sentinel = "[DONE]"

    def endpoint(self, config: ProviderConfiguration) -> str:
        return f"{config.base_url}/chat/completions"

    def headers(self, config: ProviderConfiguration, api_key: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def body(self, config: ProviderConfiguration, request: RequestContext) -> Dict[str, Any]:
        return {
            "model": config.model,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_message},
            ],
            "stream": True,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }

    def decode_data(self, data: str) -> Decoded:
        if data == self.done_sentinel:
            return STREAM_END
        chunk = _loads_object(data)
        if chunk is None:
            return None
        if chunk.get("error"):
            raise StreamFault(f"Provider reported an error: {_error_text(chunk)}")
        choices = chunk.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return None
        delta = choices[0].get("delta")
        if isinstance(delta, dict) and isinstance(delta.get("content"), str):
            return delta["content"]
        return None


class OllamaProvider(Provider):
    """
    Snapshot framing over JSON lines: every object carries the full message so
    far in message.content, and {"done": true} closes the stream.
    """

    name = ProviderName.ollama
    framing = Framing.snapshot

    def endpoint(self, config: ProviderConfiguration) -> str:
        return f"{config.base_url}/chat"

    def headers(self, config: ProviderConfiguration, api_key: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def body(self, config: ProviderConfiguration, request: RequestContext) -> Dict[str, Any]:
        return {
            "model": config.model,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_message},
            ],
            "stream": True,
            "options": {
                "temperature": request.temperature,
                "num_predict": request.max_tokens,
            },
        }

    def decode_line(self, line: str) -> Decoded:
        line = line.strip()
        if not line:
            return None
        obj = _loads_object(line)
        if obj is None:
            return None
        if obj.get("error"):
            raise StreamFault(f"Provider reported an error: {_error_text(obj)}")
        if obj.get("done") is True:
            return STREAM_END
        message = obj.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        return None


PROVIDERS: Dict[ProviderName, Provider] = {
    ProviderName.anthropic: AnthropicProvider(),
    ProviderName.openai: OpenAIProvider(),
    ProviderName.ollama: OllamaProvider(),
}


def provider_for(config: ProviderConfiguration) -> Provider:
    return PROVIDERS[config.provider]
