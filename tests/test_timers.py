import threading

from audio.timers import ManualTimer, TimerLoop


def test_manual_timer_runs_due_callbacks_in_order():
    timer = ManualTimer()
    fired = []
    timer.call_later(0.2, fired.append, "b")
    timer.call_later(0.1, fired.append, "a")
    timer.call_later(0.5, fired.append, "c")

    timer.advance(0.3)

    assert fired == ["a", "b"]
    assert timer.now == 0.3
    assert timer.pending == 1


def test_manual_timer_callbacks_can_rearm():
    timer = ManualTimer()
    ticks = []

    def tick():
        ticks.append(timer.now)
        timer.call_later(0.1, tick)

    timer.call_later(0.0, tick)
    timer.advance(0.35)
    assert len(ticks) == 4


def test_cancelled_handle_does_not_fire():
    timer = ManualTimer()
    fired = []
    handle = timer.call_later(0.1, fired.append, 1)
    handle.cancel()
    timer.advance(1.0)
    assert fired == []


def test_timer_loop_runs_callbacks_on_its_thread():
    loop = TimerLoop()
    loop.start()
    done = threading.Event()
    threads = []

    def callback():
        threads.append(threading.current_thread())
        done.set()

    try:
        loop.call_later(0.01, callback)
        assert done.wait(2.0)
        assert threads[0] is not threading.current_thread()
    finally:
        loop.stop()
    assert not loop.is_running


def test_timer_loop_survives_failing_callback(capsys):
    loop = TimerLoop()
    loop.start()
    done = threading.Event()

    def boom():
        raise RuntimeError("boom")

    try:
        loop.call_later(0.0, boom)
        loop.call_later(0.01, done.set)
        assert done.wait(2.0)
    finally:
        loop.stop()
    assert "[TIMER]" in capsys.readouterr().out
