from hotupdate.core.subscription import Subscription


def test_context_manager_connects_only_inside_block(bus):
    received = []
    with Subscription(bus.update_available, received.append) as subscription:
        assert subscription.active
        bus.update_available.emit("1.1")

    assert not subscription.active
    bus.update_available.emit("1.2")
    assert received == ["1.1"]


def test_released_when_block_raises(bus):
    received = []
    subscription = Subscription(bus.sync_stopped, received.append)
    try:
        with subscription:
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert not subscription.active
    bus.sync_stopped.emit(0)
    assert received == []


def test_once_fires_a_single_time(bus):
    received = []
    subscription = Subscription(bus.sync_progress, lambda *args: received.append(args), once=True)
    subscription.attach()

    bus.sync_progress.emit("updating", 50)
    bus.sync_progress.emit("updating", 100)

    assert received == [("updating", 50)]
    assert not subscription.active


def test_release_is_idempotent(bus):
    subscription = Subscription(bus.update_available, lambda version: None).attach()
    subscription.attach()
    subscription.release()
    subscription.release()
    assert not subscription.active
