"""Tests for batched flushing: coalescing, ordering, runaway cycles, async ticks."""

import asyncio
import logging

import pytest

from depflow import (
    RunawayUpdateError,
    Subscriber,
    autorun,
    config,
    flush,
    get_pending_count,
    next_tick,
    reactive,
    watch,
)
from depflow import scheduler


class TestCoalescing:
    def test_burst_reruns_once(self):
        state = reactive({"a": 1, "b": 2})
        runs = []
        autorun(lambda: runs.append(state["a"] + state["b"]))
        for i in range(10):
            state["a"] = i
            state["b"] = i
        assert runs == [3]
        assert get_pending_count() == 1
        flush()
        assert runs == [3, 18]
        assert get_pending_count() == 0

    def test_each_burst_gets_its_own_flush(self):
        state = reactive({"a": 1})
        runs = []
        autorun(lambda: runs.append(state["a"]))
        state["a"] = 2
        flush()
        state["a"] = 3
        flush()
        assert runs == [1, 2, 3]

    def test_reverting_within_a_burst_still_reruns_without_callback(self):
        state = reactive({"a": 1})
        seen = []
        watch(lambda: state["a"], lambda new, old: seen.append(new))
        state["a"] = 2
        state["a"] = 1
        flush()
        assert seen == []


class TestOrdering:
    def test_older_subscribers_run_first(self):
        state = reactive({"a": 1})
        order = []
        first = Subscriber(lambda: order.append("first") or state["a"])
        second = Subscriber(lambda: order.append("second") or state["a"])
        order.clear()
        # Invalidate in reverse creation order.
        second.update()
        first.update()
        flush()
        assert order == ["first", "second"]

    def test_job_queued_during_flush_runs_in_same_flush(self):
        state = reactive({"a": 1, "b": 1})
        order = []

        def on_a(new, old):
            order.append("a")
            state["b"] = new

        Subscriber(lambda: state["a"], on_a)
        Subscriber(lambda: state["b"], lambda n, o: order.append("b"))
        state["a"] = 2
        flush()
        assert order == ["a", "b"]
        assert get_pending_count() == 0

    def test_lower_id_queued_during_flush_is_not_skipped(self):
        state = reactive({"x": 1, "y": 1})
        order = []
        early = Subscriber(lambda: state["x"], lambda n, o: order.append("early"))

        def on_y(new, old):
            order.append("late")
            state["x"] = new

        Subscriber(lambda: state["y"], on_y)
        state["y"] = 2
        flush()
        assert order == ["late", "early"]
        assert early.value == 2

    def test_before_hook_runs_before_each_rerun(self):
        state = reactive({"a": 1})
        calls = []
        Subscriber(
            lambda: calls.append("run") or state["a"],
            before=lambda: calls.append("before"),
        )
        state["a"] = 2
        flush()
        assert calls == ["run", "before", "run"]


class TestRunaway:
    def _make_cycle(self, state):
        def bump(new, old):
            state["n"] = new + 1

        return Subscriber(lambda: state["n"], bump)

    def test_runaway_cycle_raises(self):
        config.max_update_count = 5
        state = reactive({"n": 0})
        self._make_cycle(state)
        state["n"] = 1
        with pytest.raises(RunawayUpdateError, match="Infinite update loop"):
            flush()
        assert get_pending_count() == 0
        assert state["n"] <= 10

    def test_runaway_cycle_in_sync_mode_raises_from_the_write(self, sync_flush):
        config.max_update_count = 3
        state = reactive({"n": 0})
        self._make_cycle(state)
        with pytest.raises(RunawayUpdateError):
            state["n"] = 1

    def test_production_logs_and_aborts(self, caplog):
        config.production = True
        config.max_update_count = 5
        state = reactive({"n": 0})
        self._make_cycle(state)
        state["n"] = 1
        with caplog.at_level(logging.ERROR, logger="depflow.scheduler"):
            flush()
        assert "Infinite update loop" in caplog.text
        assert get_pending_count() == 0

    def test_scheduler_recovers_after_runaway(self):
        config.max_update_count = 2
        state = reactive({"n": 0, "ok": 0})
        self._make_cycle(state)
        state["n"] = 1
        with pytest.raises(RunawayUpdateError):
            flush()

        runs = []
        autorun(lambda: runs.append(state["ok"]))
        state["ok"] = 1
        flush()
        assert runs == [0, 1]


class TestErrorsDuringFlush:
    def test_internal_error_resets_scheduler(self):
        reported = []
        config.error_handler = lambda exc, ctx, info: reported.append(exc)
        state = reactive({"a": 1})

        def render():
            if state["a"] > 1:
                raise RuntimeError("render failed")
            return state["a"]

        autorun(render)
        state["a"] = 2
        flush()  # the tick isolates the failing job
        assert isinstance(reported[0], RuntimeError)
        assert scheduler._waiting is False
        assert get_pending_count() == 0


class TestAsyncFlush:
    def test_flushes_after_the_burst_on_the_event_loop(self):
        async def main():
            state = reactive({"a": 1})
            runs = []
            autorun(lambda: runs.append(state["a"]))
            state["a"] = 2
            state["a"] = 3
            assert runs == [1]
            await next_tick()
            return runs

        assert asyncio.run(main()) == [1, 3]

    def test_flush_happens_before_other_tasks_resume(self):
        async def main():
            state = reactive({"a": 1})
            seen = []
            watch(lambda: state["a"], lambda new, old: seen.append(new))

            async def mutate():
                state["a"] = 2

            await asyncio.create_task(mutate())
            await asyncio.sleep(0)
            return seen

        assert asyncio.run(main()) == [2]
