# Per-screen controller: validates input, drives one streaming request at a time through a StreamRunner
# and keeps a per-format response cache so switching formats does not always cost a round trip.

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Set, Union

from .client import StreamingClient
from .commands import Command, CommandInputs, ResponseFormat
from .context import Context
from .dispatch import StateDispatcher
from .errors import ClinAssistError, TemplateMissing
from .models import Framing, Phase, StreamSnapshot
from .prompts import PromptStore
from .settings import SecureSettings
from .streaming import StreamHandlers, StreamRunner

Observer = Callable[[StreamSnapshot], None]


class CommandOrchestrator:
    """
    State machine over Phase {idle, streaming, completed, failed} for one screen.

    Public methods may be called from any thread; they are executed on the
    dispatcher thread, which is also the only thread that mutates the fields
    below and the only thread observers are called on.

    Cache rules:
      - submit() clears every cached format and records the validated inputs
        as the current generation.
      - toggle_format() serves a cached format without network activity, and
        otherwise fetches only the missing format for the current generation.
      - The requesting format's cache entry is rewritten on every received
        piece, so cancelling keeps whatever text already arrived.
    """

    def __init__(
        self,
        command: Command,
        client: StreamingClient,
        prompt_store: PromptStore,
        settings: SecureSettings,
        dispatcher: Optional[StateDispatcher] = None,
        ctx: Optional[Context] = None,
    ) -> None:
        self.command = command
        self.client = client
        self.prompt_store = prompt_store
        self.settings = settings
        self.dispatcher = dispatcher or StateDispatcher()
        self.ctx = ctx or Context()
        self.runner = StreamRunner(self.dispatcher, ctx=self.ctx, name=command.key or "command")

        self.phase: Phase = Phase.idle
        self.format: ResponseFormat = command.formats[0]
        self.output: str = ""
        self.is_streaming: bool = False
        self.is_fetching_alternate: bool = False
        self.error: Optional[str] = None

        self._cache: Dict[ResponseFormat, str] = {}
        self._complete: Set[ResponseFormat] = set()
        self._generation: Optional[CommandInputs] = None
        self._observers: List[Observer] = []

    # ---- observation -------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register observer for every state change; returns an unsubscribe callable."""
        self.dispatcher.call(self._observers.append, observer)

        def _unsubscribe() -> None:
            self.dispatcher.call(self._remove_observer, observer)

        return _unsubscribe

    def _remove_observer(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def snapshot(self) -> StreamSnapshot:
        return StreamSnapshot(
            phase=self.phase,
            format=self.format.value,
            output=self.output,
            is_streaming=self.is_streaming,
            is_fetching_alternate=self.is_fetching_alternate,
            error=self.error,
        )

    def _publish(self) -> None:
        snap = self.snapshot()
        for observer in list(self._observers):
            try:
                observer(snap)
            except Exception as e:
                self.ctx.error_message(f"{self.command.key}: observer failed: {e!r}")

    # ---- derived state ----------------------------------------------

    @property
    def display_output(self) -> str:
        return self._cache.get(self.format, "")

    @property
    def has_alternate_format(self) -> bool:
        return any(fmt in self._cache for fmt in self.command.formats if fmt != self.format)

    def cached(self, fmt: Union[ResponseFormat, str]) -> Optional[str]:
        return self._cache.get(ResponseFormat(fmt))

    # ---- input fields ------------------------------------------------

    def set_fields(self, **values: str) -> None:
        self.dispatcher.call(self.command.set_fields, **values)

    # ---- operations --------------------------------------------------

    def submit(self) -> None:
        self.dispatcher.call(self._submit)

    def toggle_format(self, new_format: Union[ResponseFormat, str]) -> None:
        fmt = ResponseFormat(new_format)
        if fmt not in self.command.formats:
            raise ValueError(f"{self.command.key} does not offer the {fmt.value!r} format")
        self.dispatcher.call(self._toggle_format, fmt)

    def cancel_streaming(self) -> None:
        self.dispatcher.call(self._cancel_streaming)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the latest request has finished and its updates are visible."""
        return self.runner.wait(timeout)

    # ---- dispatcher-thread implementations ---------------------------

    def _submit(self) -> None:
        self.runner.cancel()
        try:
            inputs = self.command.prepare()
        except ClinAssistError as e:
            self._fail(str(e))
            return

        self._cache.clear()
        self._complete.clear()
        self._generation = inputs
        # Nothing from the previous inputs may stay visible, even if the request never starts.
        self.output = ""
        self.ctx.log(f"{self.command.key}: submit ({self.format.value})")
        self._stream_format(inputs, self.format, alternate=False)

    def _toggle_format(self, fmt: ResponseFormat) -> None:
        if self.runner.cancel():
            self._stop_streaming(Phase.idle)
        self.format = fmt

        cached = self._cache.get(fmt)
        if cached is not None:
            self.ctx.log(f"{self.command.key}: {fmt.value} served from cache")
            self.output = cached
            self.error = None
            self.phase = Phase.completed if fmt in self._complete else Phase.idle
            self._publish()
            return

        if self._generation is None:
            self._publish()
            return

        self.ctx.log(f"{self.command.key}: fetching alternate format {fmt.value}")
        self._stream_format(self._generation, fmt, alternate=True)

    def _cancel_streaming(self) -> None:
        self.runner.cancel()
        self._stop_streaming(Phase.idle)
        self._publish()

    def _stream_format(self, inputs: CommandInputs, fmt: ResponseFormat, alternate: bool) -> None:
        template = self.prompt_store.template(self.command.key)
        if template is None:
            self._fail(str(TemplateMissing(self.command.key)))
            return

        message = self.command.build_message(inputs, fmt)
        try:
            configuration = self.settings.configuration()
            stream = self.client.stream_completion(
                configuration,
                template.system_prompt,
                message,
                temperature=self.command.temperature,
                max_tokens=self.command.max_tokens,
            )
        except ClinAssistError as e:
            self._fail(str(e))
            return

        self.error = None
        self.output = ""
        self.is_streaming = True
        self.is_fetching_alternate = alternate
        self.phase = Phase.streaming
        self._publish()

        framing = stream.framing
        received = {"text": ""}

        def on_piece(piece: str) -> None:
            text = received["text"] + piece if framing is Framing.delta else piece
            received["text"] = text
            self._cache[fmt] = text
            self.output = text
            self._publish()

        def on_complete() -> None:
            self._cache[fmt] = received["text"]
            self._complete.add(fmt)
            self._stop_streaming(Phase.completed)
            self._publish()

        def on_error(err: ClinAssistError) -> None:
            # Partial text stays in output and in the cache entry for fmt.
            self.error = str(err)
            self._stop_streaming(Phase.failed)
            self._publish()

        self.runner.start(stream, StreamHandlers(on_piece, on_complete, on_error), label=fmt.value)

    def _stop_streaming(self, phase: Phase) -> None:
        self.is_streaming = False
        self.is_fetching_alternate = False
        self.phase = phase

    def _fail(self, message: str) -> None:
        self.ctx.log(f"{self.command.key}: {message}")
        self.error = message
        self._stop_streaming(Phase.failed)
        self._publish()
