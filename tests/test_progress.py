from memory_ai.progress import ERROR_PROGRESS, ProgressTracker


def test_new_subscriber_gets_current_value():
    tracker = ProgressTracker()
    tracker.update(40.0, "Downloading")

    seen = []
    tracker.subscribe(lambda p, m: seen.append((p, m)))
    assert seen == [(40.0, "Downloading")]


def test_updates_complete_and_unsubscribe():
    tracker = ProgressTracker()
    seen = []
    unsubscribe = tracker.subscribe(lambda p, m: seen.append((p, m)))

    tracker.update(50.0, "Halfway")
    tracker.complete("Done")
    unsubscribe()
    tracker.update(10.0, "ignored")

    assert seen == [(0.0, None), (50.0, "Halfway"), (100.0, "Done")]
    assert not tracker.has_subscribers()


def test_error_sentinel():
    tracker = ProgressTracker()
    tracker.error("network down")
    assert tracker.get_progress() == (ERROR_PROGRESS, "Error: network down")
    assert ERROR_PROGRESS < 0


def test_reset():
    tracker = ProgressTracker()
    tracker.update(70.0, "x")
    tracker.reset()
    assert tracker.get_progress() == (0.0, None)


def test_failing_subscriber_does_not_block_others():
    tracker = ProgressTracker()
    seen = []

    def bad(p, m):
        if p > 0:
            raise RuntimeError("subscriber bug")

    tracker.subscribe(bad)
    tracker.subscribe(lambda p, m: seen.append(p))
    tracker.update(30.0)
    assert seen == [0.0, 30.0]
