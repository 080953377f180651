# Streaming completion client: opens one POST per call with requests (stream=True), decodes the body
# line by line through the provider's wire protocol and hands back a lazy, framing-tagged stream.

import json
import pathlib
import threading
from typing import Any, Dict, Iterator, Optional, Tuple

import requests

from . import config
from .context import Context
from .errors import MissingCredential, ServerError, StreamFault
from .fs import short_id
from .models import Framing, ProviderConfiguration, RequestContext
from .providers import STREAM_END, Provider, provider_for

REDACTED_HEADERS = ("authorization", "x-api-key", "api-key")


class CompletionStream:
    """
    Lazy, single-use sequence of text pieces from one provider response.

    The HTTP request is issued when iteration starts. `framing` tells the
    consumer how to combine pieces: Framing.delta pieces are appended,
    Framing.snapshot pieces each replace everything received before.

    Iteration raises ServerError (before any piece) for a non-200 response and
    StreamFault for a transport or decode failure after the handshake. Once
    `cancel_event` is set, or close() is called, iteration stops without
    yielding anything further and the connection is released.
    """

    def __init__(
        self,
        client: "StreamingClient",
        provider: Provider,
        url: str,
        headers: Dict[str, str],
        payload: Dict[str, Any],
        cancel_event: Optional[threading.Event] = None,
        request_id: Optional[str] = None,
    ) -> None:
        self.client = client
        self.provider = provider
        self.url = url
        self.headers = headers
        self.payload = payload
        self.cancel_event = cancel_event or threading.Event()
        self.request_id = request_id or short_id("req")
        self._response: Optional[requests.Response] = None
        self._started = False

    @property
    def framing(self) -> Framing:
        return self.provider.framing

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def __iter__(self) -> Iterator[str]:
        if self._started:
            raise RuntimeError("CompletionStream cannot be iterated more than once")
        self._started = True
        return self._iterate()

    def close(self) -> None:
        """Cancel the stream and drop the connection; safe to call from any thread, repeatedly."""
        self.cancel_event.set()
        response = self._response
        if response is not None:
            response.close()

    def collect(self) -> str:
        """Drain the stream and return the final text according to its framing."""
        if self.framing is Framing.snapshot:
            text = ""
            for piece in self:
                text = piece
            return text
        return "".join(self)

    def _iterate(self) -> Iterator[str]:
        if self.cancelled:
            return
        response = self.client.open(self)
        self._response = response
        try:
            if self.cancelled:
                return
            if response.status_code != 200:
                body = ""
                try:
                    body = response.text[:2000]
                except (requests.exceptions.RequestException, UnicodeDecodeError):
                    body = ""
                self.client.ctx.log(f"{self.request_id}: {self.provider.name.value} HTTP {response.status_code}")
                raise ServerError(response.status_code, body)

            if response.encoding is None:
                # text/event-stream and application/x-ndjson often omit a charset.
                response.encoding = "utf-8"
            try:
                for raw in response.iter_lines(decode_unicode=True):
                    if self.cancelled:
                        return
                    if raw is None:
                        continue
                    line = raw.decode("utf-8") if isinstance(raw, bytes) else raw
                    piece = self.provider.decode_line(line)
                    if piece is STREAM_END:
                        return
                    if piece is None:
                        continue
                    if self.cancelled:
                        return
                    yield piece
            except (requests.exceptions.RequestException, UnicodeDecodeError, OSError, ValueError) as e:
                if self.cancelled:
                    # close() from another thread tears the socket down under the reader.
                    return
                raise StreamFault(f"The response stream was interrupted: {e}", cause=e) from e
        finally:
            response.close()


class StreamingClient:
    """
    Stateless, shareable client for every supported provider.

    One requests.Session is reused for connection pooling; per-request headers
    carry the credential so a settings change takes effect on the next call.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        ctx: Optional[Context] = None,
        timeout: Optional[Tuple[float, float]] = None,
        http_dump_dir: Optional[str] = None,
    ) -> None:
        self.session = session or requests.Session()
        self.ctx = ctx or Context()
        self.timeout = timeout or (config.CONNECT_TIMEOUT_SEC, config.READ_TIMEOUT_SEC)
        dump_dir = config.HTTP_DUMP_DIR if http_dump_dir is None else http_dump_dir
        self.http_dump_dir = pathlib.Path(dump_dir) if dump_dir else None

    def stream_completion(
        self,
        configuration: ProviderConfiguration,
        system_prompt: str,
        user_message: str,
        temperature: float = config.DEFAULT_TEMPERATURE,
        max_tokens: int = config.DEFAULT_MAX_TOKENS,
        cancel_event: Optional[threading.Event] = None,
    ) -> CompletionStream:
        """
        Prepare one streaming completion request.

        Args:
            configuration: Provider, credential, model and endpoint root.
            system_prompt: System prompt for the command.
            user_message: Assembled user message.
            temperature: Sampling temperature in [0, 1].
            max_tokens: Output token budget (> 0).
            cancel_event: Optional event the caller sets to stop the stream.

        Returns:
            A CompletionStream; the network request starts when it is iterated.

        Raises:
            MissingCredential: The API key is absent or blank. Nothing is sent.
        """
        api_key = configuration.usable_api_key()
        if api_key is None:
            raise MissingCredential(configuration.profile.label)

        request = RequestContext(
            user_message=user_message,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        provider = provider_for(configuration)
        return CompletionStream(
            client=self,
            provider=provider,
            url=provider.endpoint(configuration),
            headers=provider.headers(configuration, api_key),
            payload=provider.body(configuration, request),
            cancel_event=cancel_event,
        )

    def open(self, stream: CompletionStream) -> requests.Response:
        """Send the POST for stream; connection failures surface as StreamFault."""
        self.ctx.log(f"{stream.request_id}: POST {stream.url} ({stream.provider.name.value}, {stream.framing.value})")
        if self.http_dump_dir is not None:
            dump_http_file(
                str(self.http_dump_dir / f"{stream.request_id}.http"),
                stream.url,
                "POST",
                stream.headers,
                stream.payload,
                ctx=self.ctx,
            )
        try:
            return self.session.post(
                stream.url,
                json=stream.payload,
                headers=stream.headers,
                stream=True,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise StreamFault(f"Could not reach the provider: {e}", cause=e) from e


def dump_http_file(
    file: str,
    url: str,
    method: str,
    headers: Dict[str, str],
    obj: Any,
    ctx: Optional[Context] = None,
) -> None:
    """
    Write a human-readable HTTP request dump (REST Client .http format) for debugging.

    Credential headers are redacted. This helper is best-effort: serialization
    and I/O errors are reported through ctx instead of raised.
    """
    ctx = ctx or Context()
    try:
        json_str = json.dumps(obj, indent=2, ensure_ascii=False)
        path = pathlib.Path(file)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            f.write(f"{method.upper()} {url}\n")
            for key, value in headers.items():
                shown = "<redacted>" if key.lower() in REDACTED_HEADERS else value
                f.write(f"{key}: {shown}\n")
            f.write("\n")
            f.write(json_str)
        ctx.log(f"HTTP request dumped to {file}")
    except TypeError as e:
        ctx.error_message(f"The request body could not be serialized to JSON. Details: {e}")
    except OSError as e:
        ctx.error_message(f"Could not write to file {file}. Details: {e}")
