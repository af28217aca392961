"""
connmgrd Status Notifier

Watches registry events and pushes fresh status documents to
subscribers.

Rules:
- Technology events trigger a general status post only for the
  "Powered" and "Connected" properties; other churn is ignored.
- Any property change on a watched cellular service triggers a WAN
  status post.
- A structural change of the cellular service list re-reads the watched
  service set before the WAN status is posted.
- Every trigger posts; identical consecutive documents are not
  suppressed, since clients may rely on edge-triggered delivery.

The cellular technology may appear after startup (or never). Until it
does, the notifier polls for it on the main loop and stops polling once
it is found.
"""

import logging
from typing import Callable, Optional, Set

from .events import Event, ServicePropertyChanged, ServicesChanged, TechnologyPropertyChanged
from .mainloop import MainLoop, TimeoutHandle
from .registry.base import ServiceRegistry
from .status.aggregator import Aggregator
from .types import TechnologyType


logger = logging.getLogger("connmgrd.notifier")

# Technology properties that affect the status document
WATCHED_TECHNOLOGY_PROPERTIES = frozenset({"Powered", "Connected"})

# Interval between checks for the cellular technology (seconds)
DEFAULT_CELLULAR_POLL_INTERVAL = 0.5

# Subscription method both status documents are posted under
STATUS_METHOD = "getstatus"

# Publisher: (method, payload) -> number of subscribers reached
Publisher = Callable[[str, dict], int]


class Notifier:
    """
    Dispatches registry events to subscriber notifications.

    Usage:
        notifier = Notifier(
            registry, aggregator, loop,
            publish_status=cm_server.post,
            publish_wan=wan_server.post,
        )
        registry.set_event_sink(lambda evt: loop.call_soon(notifier.dispatch, evt))
        notifier.start()
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        aggregator: Aggregator,
        loop: MainLoop,
        publish_status: Publisher,
        publish_wan: Optional[Publisher] = None,
        cellular_poll_interval: float = DEFAULT_CELLULAR_POLL_INTERVAL,
    ):
        """
        Initialize notifier.

        Args:
            registry: Registry the events come from
            aggregator: Builds the documents to post
            loop: Main loop (used for cellular discovery polling)
            publish_status: Posts the general status document
            publish_wan: Posts the WAN status document (optional)
            cellular_poll_interval: Seconds between cellular technology checks
        """
        self._registry = registry
        self._aggregator = aggregator
        self._loop = loop
        self._publish_status = publish_status
        self._publish_wan = publish_wan
        self._poll_interval = cellular_poll_interval

        self._watched_technologies: Set[TechnologyType] = set()
        self._watched_services: Set[str] = set()
        self._cellular_poll: Optional[TimeoutHandle] = None

        # Statistics
        self._status_posts = 0
        self._wan_posts = 0
        self._ignored_events = 0

    # === Lifecycle ===

    def start(self) -> None:
        """Watch all present technologies and cellular services."""
        for technology in (TechnologyType.WIRED, TechnologyType.WIFI):
            if not self._watch_technology(technology):
                logger.info(f"No {technology.label} technology present")

        if not self._watch_technology(TechnologyType.CELLULAR):
            # Absence of cellular hardware is a normal condition
            logger.debug("Cellular technology not present yet, polling")
            self._cellular_poll = self._loop.call_every(
                self._poll_interval, self._poll_cellular,
            )

        self._watch_cellular_services()

    def stop(self) -> None:
        """Stop cellular discovery polling."""
        if self._cellular_poll is not None:
            self._cellular_poll.cancel()
            self._cellular_poll = None

    @property
    def watched_technologies(self) -> Set[TechnologyType]:
        return set(self._watched_technologies)

    @property
    def watched_services(self) -> Set[str]:
        return set(self._watched_services)

    @property
    def is_polling_cellular(self) -> bool:
        return self._cellular_poll is not None

    def _watch_technology(self, technology: TechnologyType) -> bool:
        """Start watching a technology if present. Returns True if watched."""
        if self._registry.find_technology(technology) is None:
            return False
        self._watched_technologies.add(technology)
        return True

    def _poll_cellular(self) -> None:
        if not self._watch_technology(TechnologyType.CELLULAR):
            return

        logger.info("Cellular technology found")
        self.stop()
        self._watch_cellular_services()

    def _watch_cellular_services(self) -> None:
        """Re-read the set of cellular services to watch."""
        self._watched_services = {
            service.identifier
            for service in self._registry.get_services(TechnologyType.CELLULAR)
        }

    # === Dispatch ===

    def dispatch(self, event: Event) -> None:
        """
        Handle one registry event.

        Args:
            event: Event published by the registry
        """
        if isinstance(event, TechnologyPropertyChanged):
            self._on_technology_changed(event)
        elif isinstance(event, ServicePropertyChanged):
            self._on_service_changed(event)
        elif isinstance(event, ServicesChanged):
            self._on_services_changed(event)
        else:
            self._ignored_events += 1
            logger.debug(f"Ignoring event: {event!r}")

    def _on_technology_changed(self, event: TechnologyPropertyChanged) -> None:
        if (event.technology not in self._watched_technologies
                or event.name not in WATCHED_TECHNOLOGY_PROPERTIES):
            self._ignored_events += 1
            return

        self.send_status()

        # WAN "state" mirrors cellular power
        if event.technology is TechnologyType.CELLULAR and event.name == "Powered":
            self.send_wan_status()

    def _on_service_changed(self, event: ServicePropertyChanged) -> None:
        if event.service_id not in self._watched_services:
            self._ignored_events += 1
            return

        self.send_wan_status()

    def _on_services_changed(self, event: ServicesChanged) -> None:
        if event.technology not in (None, TechnologyType.CELLULAR):
            self._ignored_events += 1
            return

        # Watch the new list before posting
        self._watch_cellular_services()
        self.send_wan_status()

    # === Posting ===

    def send_status(self) -> int:
        """
        Post a fresh general status document to subscribers.

        Returns:
            Number of subscribers reached
        """
        payload = {"returnValue": True}
        payload.update(self._aggregator.status().to_dict())

        reached = self._publish_status(STATUS_METHOD, payload)
        self._status_posts += 1
        logger.info(f"Posted status to {reached} subscriber(s)")
        logger.debug(f"Status payload: {payload}")
        return reached

    def send_wan_status(self) -> int:
        """
        Post a fresh WAN status document to subscribers.

        Returns:
            Number of subscribers reached
        """
        if self._publish_wan is None:
            return 0

        payload = {"returnValue": True}
        payload.update(self._aggregator.wan_status().to_dict())

        reached = self._publish_wan(STATUS_METHOD, payload)
        self._wan_posts += 1
        logger.info(f"Posted WAN status to {reached} subscriber(s)")
        logger.debug(f"WAN status payload: {payload}")
        return reached

    def get_stats(self) -> dict:
        """
        Get notifier statistics.

        Returns:
            dict: Post counts and watch state
        """
        return {
            "status_posts": self._status_posts,
            "wan_posts": self._wan_posts,
            "ignored_events": self._ignored_events,
            "watched_technologies": sorted(t.label for t in self._watched_technologies),
            "watched_services": len(self._watched_services),
            "polling_cellular": self.is_polling_cellular,
        }
