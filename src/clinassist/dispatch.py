# Single serialization point for observable state: every mutation runs on one dedicated thread, in the
# order it was posted, so observers never see a half-applied update.

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional


class StateDispatcher:
    """
    Coordinator thread for state owned by orchestrators.

    Worker threads never touch shared fields directly; they post() a callable
    and the dispatcher applies it. Several orchestrators may share a dispatcher
    (the way screens share a UI thread) or each own one.
    """

    def __init__(self, name: str = "clinassist-state") -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._thread_ident: Optional[int] = None
        self._executor.submit(self._capture_thread).result()

    def _capture_thread(self) -> None:
        self._thread_ident = threading.get_ident()

    def on_dispatch_thread(self) -> bool:
        return threading.get_ident() == self._thread_ident

    def post(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Queue fn(*args, **kwargs) on the coordinator thread."""
        return self._executor.submit(fn, *args, **kwargs)

    def call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run fn on the coordinator thread and wait for its result (inline when already there)."""
        if self.on_dispatch_thread():
            return fn(*args, **kwargs)
        return self.post(fn, *args, **kwargs).result()

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until everything posted before this call has been applied."""
        if self.on_dispatch_thread():
            return
        self.post(lambda: None).result(timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
