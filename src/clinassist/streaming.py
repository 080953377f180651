# Shared streaming and cancellation helper. Each orchestrator composes one StreamRunner; the runner owns
# the worker threads and makes sure only the currently active task can mutate orchestrator state.

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .client import CompletionStream
from .context import Context
from .dispatch import StateDispatcher
from .errors import ClinAssistError, StreamFault


@dataclass
class StreamHandlers:
    """Callbacks invoked on the dispatcher thread, only while the task is still active."""

    on_piece: Callable[[str], None]
    on_complete: Callable[[], None]
    on_error: Callable[[ClinAssistError], None]


@dataclass
class StreamTask:
    generation: int
    label: str
    stream: CompletionStream
    handlers: StreamHandlers
    thread: Optional[threading.Thread] = None
    done: threading.Event = field(default_factory=threading.Event)

    @property
    def cancelled(self) -> bool:
        return self.stream.cancelled

    def cancel(self) -> None:
        self.stream.close()


class StreamRunner:
    """
    Runs at most one CompletionStream at a time for its owner.

    start() and cancel() must be called on the dispatcher thread. The stream is
    read on a daemon worker thread; every piece, completion and failure is
    posted back to the dispatcher and dropped there unless the task that
    produced it is still the active one and has not been cancelled.
    """

    def __init__(self, dispatcher: StateDispatcher, ctx: Optional[Context] = None, name: str = "stream") -> None:
        self.dispatcher = dispatcher
        self.ctx = ctx or Context()
        self.name = name
        self.active: Optional[StreamTask] = None
        self._last: Optional[StreamTask] = None
        self._generation = 0

    @property
    def is_running(self) -> bool:
        return self.active is not None

    def start(self, stream: CompletionStream, handlers: StreamHandlers, label: str = "") -> StreamTask:
        self.cancel()
        self._generation += 1
        task = StreamTask(generation=self._generation, label=label, stream=stream, handlers=handlers)
        task.thread = threading.Thread(
            target=self._run,
            args=(task,),
            name=f"{self.name}-{task.generation}",
            daemon=True,
        )
        self.active = task
        self._last = task
        self.ctx.log(f"{self.name}: task {task.generation} started ({label or 'default'}, {stream.request_id})")
        task.thread.start()
        return task

    def cancel(self) -> bool:
        """Cancel the active task; returns False when nothing was running."""
        task = self.active
        if task is None:
            return False
        self.active = None
        task.cancel()
        self.ctx.log(f"{self.name}: task {task.generation} cancelled")
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the most recent task's worker has exited and its posted
        updates have been applied. Returns False on timeout.
        """
        task = self._last
        if task is not None and not task.done.wait(timeout):
            return False
        self.dispatcher.flush(timeout)
        return True

    def _is_current(self, task: StreamTask) -> bool:
        return task is self.active and not task.cancelled

    def _apply(self, task: StreamTask, fn: Callable[..., Any], *args: Any, finished: bool = False) -> None:
        if not self._is_current(task):
            return
        if finished:
            self.active = None
        fn(*args)

    def _run(self, task: StreamTask) -> None:
        post = self.dispatcher.post
        try:
            for piece in task.stream:
                if task.cancelled:
                    return
                post(self._apply, task, task.handlers.on_piece, piece)
            if not task.cancelled:
                post(self._apply, task, task.handlers.on_complete, finished=True)
                self.ctx.log(f"{self.name}: task {task.generation} completed")
        except ClinAssistError as e:
            self.ctx.log(f"{self.name}: task {task.generation} failed: {e}")
            post(self._apply, task, task.handlers.on_error, e, finished=True)
        except Exception as e:
            self.ctx.error_message(f"{self.name}: unexpected failure in task {task.generation}: {e!r}")
            post(self._apply, task, task.handlers.on_error, StreamFault(f"Unexpected error: {e}", cause=e), finished=True)
        finally:
            task.done.set()
