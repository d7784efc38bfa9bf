"""Tests for Computed values."""

from depflow import Computed, autorun, computed, flush, reactive


class TestComputed:
    def test_lazy_eval(self):
        call_count = 0
        state = reactive({"n": 5})

        def fn():
            nonlocal call_count
            call_count += 1
            return state["n"] * 2

        c = Computed(fn)
        assert call_count == 0  # not yet evaluated
        assert c.dirty
        assert c.get() == 10
        assert call_count == 1

    def test_caches_until_dirty(self):
        call_count = 0
        state = reactive({"n": 5})

        def fn():
            nonlocal call_count
            call_count += 1
            return state["n"] * 2

        c = Computed(fn)
        c.get()
        c()
        assert call_count == 1  # cached, no re-eval
        state["n"] = 6
        assert c.dirty
        assert call_count == 1  # marked dirty, not recomputed
        assert c.get() == 12
        assert call_count == 2

    def test_invalidation_needs_no_flush(self):
        state = reactive({"n": 5})
        c = Computed(lambda: state["n"] * 2)
        assert c.get() == 10
        state["n"] = 10
        assert c.get() == 20

    def test_dependency_tracking(self):
        """Computed tracks dependencies dynamically."""
        state = reactive({"flag": True, "a": 1, "b": 2})
        c = Computed(lambda: state["a"] if state["flag"] else state["b"])
        assert c.get() == 1

        state["flag"] = False
        assert c.get() == 2  # now depends on b, not a
        state["a"] = 100
        assert not c.dirty

    def test_chained_computed(self):
        state = reactive({"n": 3})
        doubled = Computed(lambda: state["n"] * 2)
        quadrupled = Computed(lambda: doubled.get() * 2)
        assert quadrupled.get() == 12
        state["n"] = 5
        assert quadrupled.dirty
        assert quadrupled.get() == 20

    def test_dispose_freezes_last_value(self):
        state = reactive({"n": 5})
        c = Computed(lambda: state["n"] * 2)
        c.get()
        c.dispose()
        state["n"] = 10
        assert c.get() == 10

    def test_propagates_to_reactions(self, sync_flush):
        """Computed invalidation propagates to downstream reactions."""
        state = reactive({"n": 5})
        c = Computed(lambda: state["n"] * 2)
        log = []
        autorun(lambda: log.append(c.get()))
        assert log == [10]
        state["n"] = 10
        assert log == [10, 20]

    def test_propagates_to_batched_reactions(self):
        state = reactive({"n": 5})
        c = Computed(lambda: state["n"] * 2)
        log = []
        autorun(lambda: log.append(c.get()))
        state["n"] = 6
        state["n"] = 7
        flush()
        assert log == [10, 14]

    def test_repr(self):
        c = Computed(lambda: 1)
        assert "dirty" in repr(c)
        c.get()
        assert "cached=1" in repr(c)


class TestComputedDecorator:
    def test_decorator_factory(self):
        state = reactive({"n": 7})

        @computed
        def doubled():
            return state["n"] * 2

        assert isinstance(doubled, Computed)
        assert doubled() == 14
        state["n"] = 3
        assert doubled.get() == 6
