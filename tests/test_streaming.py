"""Tests for StateDispatcher and StreamRunner."""

import threading

from clinassist.dispatch import StateDispatcher
from clinassist.errors import StreamFault
from clinassist.models import Framing
from clinassist.streaming import StreamHandlers, StreamRunner


class GatedStream:
    """Yields its pieces once the gate opens, whether or not it was closed."""

    framing = Framing.delta
    request_id = "req-test"

    def __init__(self, pieces, error=None):
        self.pieces = list(pieces)
        self.error = error
        self.gate = threading.Event()
        self._cancel = threading.Event()

    @property
    def cancelled(self):
        return self._cancel.is_set()

    def close(self):
        self._cancel.set()

    def __iter__(self):
        self.gate.wait(timeout=5)
        yield from self.pieces
        if self.error is not None:
            raise self.error


class Recorder:
    def __init__(self, dispatcher):
        self.dispatcher = dispatcher
        self.events = []
        self.threads_ok = True

    def _note(self, event):
        if not self.dispatcher.on_dispatch_thread():
            self.threads_ok = False
        self.events.append(event)

    def handlers(self):
        return StreamHandlers(
            on_piece=lambda piece: self._note(("piece", piece)),
            on_complete=lambda: self._note(("complete",)),
            on_error=lambda err: self._note(("error", str(err))),
        )


def test_dispatcher_runs_posts_in_order_on_one_thread(dispatcher):
    seen = []
    for i in range(20):
        dispatcher.post(lambda i=i: seen.append((i, dispatcher.on_dispatch_thread())))
    dispatcher.flush(5)
    assert [i for i, _ in seen] == list(range(20))
    assert all(on_thread for _, on_thread in seen)
    assert not dispatcher.on_dispatch_thread()


def test_dispatcher_call_is_reentrant(dispatcher):
    assert dispatcher.call(lambda: dispatcher.call(lambda: 42)) == 42


def test_runner_delivers_pieces_then_completion(dispatcher, ctx):
    runner = StreamRunner(dispatcher, ctx=ctx, name="t")
    recorder = Recorder(dispatcher)
    stream = GatedStream(["a", "b"])
    stream.gate.set()
    dispatcher.call(runner.start, stream, recorder.handlers(), "full")
    assert runner.wait(5)
    assert recorder.events == [("piece", "a"), ("piece", "b"), ("complete",)]
    assert recorder.threads_ok
    assert not runner.is_running


def test_runner_reports_failure_once(dispatcher, ctx):
    runner = StreamRunner(dispatcher, ctx=ctx, name="t")
    recorder = Recorder(dispatcher)
    stream = GatedStream(["a"], error=StreamFault("boom"))
    stream.gate.set()
    dispatcher.call(runner.start, stream, recorder.handlers())
    assert runner.wait(5)
    assert recorder.events == [("piece", "a"), ("error", "boom")]


def test_unexpected_exception_becomes_stream_fault(dispatcher, ctx):
    runner = StreamRunner(dispatcher, ctx=ctx, name="t")
    recorder = Recorder(dispatcher)
    stream = GatedStream([], error=KeyError("x"))
    stream.gate.set()
    dispatcher.call(runner.start, stream, recorder.handlers())
    assert runner.wait(5)
    assert recorder.events[0][0] == "error"
    assert recorder.events[0][1].startswith("Unexpected error")
    assert ctx.errors


def test_cancelled_task_never_mutates(dispatcher, ctx):
    runner = StreamRunner(dispatcher, ctx=ctx, name="t")
    recorder = Recorder(dispatcher)
    stream = GatedStream(["late", "later"])
    dispatcher.call(runner.start, stream, recorder.handlers())
    assert dispatcher.call(runner.cancel) is True
    stream.gate.set()
    assert runner.wait(5)
    assert recorder.events == []
    assert dispatcher.call(runner.cancel) is False


def test_superseded_task_is_silenced(dispatcher, ctx):
    runner = StreamRunner(dispatcher, ctx=ctx, name="t")
    old, new = Recorder(dispatcher), Recorder(dispatcher)
    first = GatedStream(["stale"])
    second = GatedStream(["fresh"])
    dispatcher.call(runner.start, first, old.handlers())
    dispatcher.call(runner.start, second, new.handlers())
    assert first.cancelled
    second.gate.set()
    first.gate.set()
    assert runner.wait(5)
    assert old.events == []
    assert new.events == [("piece", "fresh"), ("complete",)]


def test_shared_dispatcher_serves_independent_runners(ctx):
    dispatcher = StateDispatcher()
    try:
        runners = [StreamRunner(dispatcher, ctx=ctx, name=n) for n in ("drug", "cds")]
        recorders = [Recorder(dispatcher) for _ in runners]
        streams = [GatedStream(["x"]), GatedStream(["y"])]
        for runner, recorder, stream in zip(runners, recorders, streams):
            dispatcher.call(runner.start, stream, recorder.handlers())
        dispatcher.call(runners[0].cancel)
        for stream in streams:
            stream.gate.set()
        for runner in runners:
            assert runner.wait(5)
        assert recorders[0].events == []
        assert recorders[1].events == [("piece", "y"), ("complete",)]
    finally:
        dispatcher.shutdown()
