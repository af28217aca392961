"""Tests for the status notifier."""

import pytest

from connmgrd.events import ServicePropertyChanged, ServicesChanged, TechnologyPropertyChanged
from connmgrd.notifier import Notifier
from connmgrd.registry import Technology
from connmgrd.types import ServiceState, TechnologyType

from conftest import make_service


@pytest.fixture
def notifier(registry, aggregator, loop, publisher, wan_publisher):
    n = Notifier(
        registry, aggregator, loop,
        publish_status=publisher,
        publish_wan=wan_publisher,
        cellular_poll_interval=0.5,
    )
    registry.set_event_sink(lambda event: loop.call_soon(n.dispatch, event))
    return n


def _add_cellular(registry, powered=True):
    registry.add_technology(Technology(TechnologyType.CELLULAR, name="Cellular", powered=powered))


def test_start_watches_present_technologies(notifier):
    notifier.start()
    assert notifier.watched_technologies == {TechnologyType.WIRED, TechnologyType.WIFI}


def test_wifi_powered_posts_once(registry, loop, notifier, publisher, wan_publisher, wired_online):
    notifier.start()
    loop.run_pending()
    publisher.posts.clear()

    registry.update_technology(TechnologyType.WIFI, powered=False)
    loop.run_pending()

    assert len(publisher.posts) == 1
    method, payload = publisher.posts[0]
    assert method == "getstatus"
    assert payload["returnValue"] is True
    assert payload["wired"]["ipAddress"] == "192.168.1.5"
    assert wan_publisher.posts == []


def test_post_reflects_state_at_dispatch(registry, notifier, publisher, wired_online):
    notifier.start()
    registry.update_service("ethernet_0", state=ServiceState.READY)

    notifier.dispatch(TechnologyPropertyChanged(TechnologyType.WIRED, "Connected", True))

    assert publisher.payloads[-1]["wired"]["onInternet"] == "no"
    assert publisher.payloads[-1]["isInternetConnectionAvailable"] is False


def test_each_event_posts_without_deduplication(notifier, publisher):
    notifier.start()
    event = TechnologyPropertyChanged(TechnologyType.WIRED, "Powered", True)

    notifier.dispatch(event)
    notifier.dispatch(event)

    assert len(publisher.posts) == 2
    assert publisher.payloads[0] == publisher.payloads[1]


def test_other_technology_properties_ignored(registry, loop, notifier, publisher):
    notifier.start()
    registry.update_technology(TechnologyType.WIFI, name="Renamed")
    loop.run_pending()

    assert publisher.posts == []
    assert notifier.get_stats()["ignored_events"] == 1


def test_unwatched_technology_ignored(notifier, publisher):
    notifier.start()
    notifier.dispatch(TechnologyPropertyChanged(TechnologyType.CELLULAR, "Powered", True))
    assert publisher.posts == []


def test_cellular_polled_until_found(registry, loop, clock, notifier):
    notifier.start()
    assert notifier.is_polling_cellular
    assert len(loop.pending_timeouts()) == 1

    clock.advance(0.5)
    loop.run_pending()
    assert notifier.is_polling_cellular

    _add_cellular(registry)
    clock.advance(0.5)
    loop.run_pending()

    assert not notifier.is_polling_cellular
    assert loop.pending_timeouts() == []
    assert TechnologyType.CELLULAR in notifier.watched_technologies


def test_no_polling_when_cellular_present(registry, loop, notifier):
    _add_cellular(registry)
    notifier.start()

    assert not notifier.is_polling_cellular
    assert loop.pending_timeouts() == []


def test_stop_cancels_polling(loop, notifier):
    notifier.start()
    notifier.stop()

    assert not notifier.is_polling_cellular
    assert loop.pending_timeouts() == []


def test_cellular_powered_posts_both(registry, loop, notifier, publisher, wan_publisher):
    _add_cellular(registry, powered=False)
    notifier.start()

    registry.update_technology(TechnologyType.CELLULAR, powered=True)
    loop.run_pending()

    assert len(publisher.posts) == 1
    assert len(wan_publisher.posts) == 1
    assert wan_publisher.payloads[0]["state"] == "enabled"


def test_cellular_connected_posts_status_only(notifier, publisher, wan_publisher, registry):
    _add_cellular(registry)
    notifier.start()

    notifier.dispatch(TechnologyPropertyChanged(TechnologyType.CELLULAR, "Connected", True))

    assert len(publisher.posts) == 1
    assert wan_publisher.posts == []


def test_services_changed_rewatches_before_post(registry, loop, notifier, wan_publisher):
    _add_cellular(registry)
    notifier.start()
    assert notifier.watched_services == set()

    registry.add_service(make_service("cellular_1", TechnologyType.CELLULAR, ServiceState.CONFIGURATION))
    loop.run_pending()

    assert notifier.watched_services == {"cellular_1"}
    assert len(wan_publisher.posts) == 1
    assert wan_publisher.payloads[0]["connectedservices"] == [
        {"connectstatus": "connecting", "service": ["internet"]},
    ]

    registry.update_service("cellular_1", state=ServiceState.ONLINE)
    loop.run_pending()

    assert len(wan_publisher.posts) == 2
    assert wan_publisher.payloads[1]["dataaccess"] == "usable"


def test_removed_service_no_longer_watched(registry, loop, notifier, wan_publisher):
    _add_cellular(registry)
    registry.add_service(make_service("cellular_1", TechnologyType.CELLULAR))
    notifier.start()
    assert notifier.watched_services == {"cellular_1"}

    registry.remove_service("cellular_1")
    loop.run_pending()
    assert notifier.watched_services == set()

    wan_publisher.posts.clear()
    notifier.dispatch(ServicePropertyChanged("cellular_1", TechnologyType.CELLULAR, "State", "idle"))
    assert wan_publisher.posts == []


def test_non_cellular_service_changes_ignored(registry, loop, notifier, publisher, wan_publisher, wired_online):
    notifier.start()
    loop.run_pending()
    wan_publisher.posts.clear()

    registry.update_service("ethernet_0", strength=10)
    registry.add_service(make_service("wifi_a", TechnologyType.WIFI))
    loop.run_pending()

    assert publisher.posts == []
    assert wan_publisher.posts == []


def test_untyped_services_changed_rewatches(registry, notifier, wan_publisher):
    _add_cellular(registry)
    notifier.start()
    registry.add_service(make_service("cellular_1", TechnologyType.CELLULAR))

    notifier.dispatch(ServicesChanged())

    assert notifier.watched_services == {"cellular_1"}
    assert len(wan_publisher.posts) == 1


def test_no_wan_publisher(registry, aggregator, loop, publisher):
    notifier = Notifier(registry, aggregator, loop, publish_status=publisher)
    assert notifier.send_wan_status() == 0
    assert notifier.send_status() == 1
