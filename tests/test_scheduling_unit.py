"""Unit tests for the timer queue."""


class TestSchedulerUnit:
    """Unit tests for Scheduler."""

    def test_nothing_runs_before_due(self, scheduler, clock):
        calls = []
        scheduler.call_later(1.0, lambda: calls.append("late"))

        assert scheduler.run_pending() == 0
        assert calls == []
        assert scheduler.pending() == 1

        clock.now = 1.0
        assert scheduler.run_pending() == 1
        assert calls == ["late"]

    def test_runs_in_due_order_then_schedule_order(self, scheduler):
        calls = []
        scheduler.call_later(0.2, lambda: calls.append("b"))
        scheduler.call_later(0.1, lambda: calls.append("a1"))
        scheduler.call_later(0.1, lambda: calls.append("a2"))
        scheduler.call_soon(lambda: calls.append("now"))

        assert scheduler.run_until_idle() == 4
        assert calls == ["now", "a1", "a2", "b"]

    def test_run_until_idle_sleeps_until_due(self, scheduler, clock):
        scheduler.call_later(0.5, lambda: None)

        scheduler.run_until_idle()

        assert clock.sleeps == [0.5]
        assert clock.now == 0.5

    def test_callbacks_may_schedule_more(self, scheduler):
        calls = []

        def tick(n):
            calls.append(n)
            if n < 3:
                scheduler.call_later(0.05, lambda: tick(n + 1))

        scheduler.call_soon(lambda: tick(1))
        scheduler.run_until_idle()

        assert calls == [1, 2, 3]
        assert scheduler.pending() == 0

    def test_negative_delay_runs_immediately(self, scheduler, clock):
        calls = []
        scheduler.call_later(-5, lambda: calls.append(True))

        scheduler.run_pending()

        assert calls == [True]
        assert clock.sleeps == []

    def test_failing_callback_does_not_stop_queue(self, scheduler):
        calls = []

        def explode():
            raise RuntimeError("boom")

        scheduler.call_soon(explode)
        scheduler.call_soon(lambda: calls.append("after"))

        assert scheduler.run_until_idle() == 2
        assert calls == ["after"]
