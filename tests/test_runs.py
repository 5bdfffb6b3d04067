import threading

from hackernews_to_podcast.runs import Completed, Idle, Running, RunRegistry


def test_lifecycle():
    reg = RunRegistry()
    assert isinstance(reg.state("2025-04-23"), Idle)

    assert reg.try_begin("2025-04-23")
    assert isinstance(reg.state("2025-04-23"), Running)
    assert not reg.try_begin("2025-04-23")

    reg.finish("2025-04-23", "generated")
    state = reg.state("2025-04-23")
    assert isinstance(state, Completed)
    assert state.status == "generated"
    assert reg.try_begin("2025-04-23")


def test_dates_are_independent():
    reg = RunRegistry()
    assert reg.try_begin("2025-04-22")
    assert reg.try_begin("2025-04-23")
    assert reg.is_running("2025-04-22")
    assert not reg.is_running("2025-04-21")


def test_only_one_concurrent_begin_wins():
    reg = RunRegistry()
    barrier = threading.Barrier(8)
    wins = []

    def attempt():
        barrier.wait()
        wins.append(reg.try_begin("2025-04-23"))

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert wins.count(True) == 1


def test_snapshot_and_last_completed():
    reg = RunRegistry()
    assert reg.last_completed() is None

    reg.try_begin("2025-04-22")
    reg.finish("2025-04-22", "aborted")
    reg.try_begin("2025-04-23")

    snap = reg.snapshot()
    assert snap["2025-04-22"]["state"] == "completed"
    assert snap["2025-04-22"]["status"] == "aborted"
    assert "startedAt" in snap["2025-04-23"]
    assert reg.last_completed() is not None
    assert reg.is_running()
