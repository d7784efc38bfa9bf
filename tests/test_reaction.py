"""Tests for autorun, watch and reaction."""

import asyncio

from depflow import autorun, config, flush, next_tick, reaction, reactive, watch


class TestAutorun:
    def test_runs_immediately(self):
        state = reactive({"n": 10})
        log = []
        autorun(lambda: log.append(state["n"]))
        assert log == [10]

    def test_reruns_on_next_tick(self):
        state = reactive({"n": 10})
        log = []
        autorun(lambda: log.append(state["n"]))
        state["n"] = 20
        assert log == [10]
        flush()
        assert log == [10, 20]

    def test_sync_option_reruns_inside_the_write(self):
        state = reactive({"n": 10})
        log = []
        autorun(lambda: log.append(state["n"]), sync=True)
        state["n"] = 20
        assert log == [10, 20]

    def test_teardown_stops(self):
        state = reactive({"n": 10})
        log = []
        r = autorun(lambda: log.append(state["n"]))
        r.teardown()
        state["n"] = 20
        flush()
        assert log == [10]  # no additional run


class TestWatch:
    def test_callback_gets_new_and_old(self):
        state = reactive({"n": 1})
        seen = []
        watch(lambda: state["n"], lambda new, old: seen.append((new, old)))
        state["n"] = 2
        flush()
        assert seen == [(2, 1)]

    def test_path_source(self, sync_flush):
        state = reactive({"user": {"name": "ada"}})
        seen = []
        watch("user.name", lambda new, old: seen.append(new), context=state)
        state["user"] = {"name": "grace"}
        assert seen == ["grace"]

    def test_immediate(self):
        state = reactive({"n": 1})
        seen = []
        watch(lambda: state["n"], lambda new, old: seen.append((new, old)), immediate=True)
        assert seen == [(1, None)]

    def test_immediate_callback_reads_are_not_tracked(self, sync_flush):
        state = reactive({"n": 1, "other": 1})
        seen = []

        def cb(new, old):
            seen.append(state["other"])

        sub = watch(lambda: state["n"], cb, immediate=True)
        assert len(sub.deps) == 1
        state["other"] = 2
        assert seen == [1]

    def test_immediate_callback_errors_are_reported(self):
        reported = []
        config.error_handler = lambda exc, ctx, info: reported.append(info)

        def bad(new, old):
            raise ValueError("bad")

        watch(lambda: 1, bad, immediate=True)
        assert "immediate" in reported[0]

    def test_deep(self, sync_flush):
        state = reactive({"items": [{"done": False}]})
        seen = []
        watch(lambda: state["items"], lambda new, old: seen.append(1), deep=True)
        state["items"][0]["done"] = True
        assert seen == [1]

    def test_awaiting_next_tick(self):
        async def main():
            state = reactive({"n": 1})
            seen = []
            watch(lambda: state["n"], lambda new, old: seen.append(new))
            state["n"] = 2
            await next_tick()
            return seen

        assert asyncio.run(main()) == [2]


class TestReaction:
    def test_no_initial_effect(self):
        """Without fire_immediately, effect doesn't run on setup."""
        state = reactive({"v": "a"})
        effects = []
        reaction(lambda: state["v"], lambda v: effects.append(v))
        assert effects == []

    def test_fires_on_change(self):
        state = reactive({"v": "a"})
        effects = []
        reaction(lambda: state["v"], lambda v: effects.append(v))
        state["v"] = "b"
        flush()
        assert effects == ["b"]

    def test_fire_immediately(self):
        state = reactive({"v": "a"})
        effects = []
        reaction(lambda: state["v"], lambda v: effects.append(v), fire_immediately=True)
        assert effects == ["a"]

    def test_dedup_effect(self, sync_flush):
        """Effect only fires when data_fn result actually changes."""
        state = reactive({"n": 1})
        effects = []
        reaction(
            lambda: "even" if state["n"] % 2 == 0 else "odd",
            lambda v: effects.append(v),
        )
        state["n"] = 3  # still odd
        assert effects == []
        state["n"] = 4
        assert effects == ["even"]

    def test_teardown(self, sync_flush):
        state = reactive({"n": 1})
        effects = []
        r = reaction(lambda: state["n"], lambda v: effects.append(v))
        state["n"] = 2
        assert effects == [2]
        r.teardown()
        state["n"] = 3
        assert effects == [2]  # no more effects
