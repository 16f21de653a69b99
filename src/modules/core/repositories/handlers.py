"""Ready-made handlers for repository lifecycle events."""

from __future__ import annotations

from typing import Optional

from modules.core.repositories.events import RepositoryEvent
from shared.domain.bus import IEventBus, IEventHandler


class PublishToBusHandler(IEventHandler[RepositoryEvent]):
    """Forwards repository events to an event bus (the global one by default)."""

    def __init__(self, bus: Optional[IEventBus] = None) -> None:
        if bus is None:
            from shared.infrastructure.bus import event_bus

            bus = event_bus
        self.bus = bus

    def handle(self, event: RepositoryEvent) -> None:
        self.bus.publish(event)
