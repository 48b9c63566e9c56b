from typing import Iterable, List, Protocol

from core.events import Event
from core.service import Outcome
from logging_config import get_logger

logger = get_logger(__name__)


class Transport(Protocol):
    """Capabilities every delivery mechanism provides.

    ``deliver_to_user`` is point-to-point, ``deliver_to_room`` reaches every
    recipient of a broadcast event. ``await_updates_for`` is only meaningful
    for transports that buffer (long-poll); push transports return nothing.
    """

    name: str

    async def deliver_to_user(self, participant_id: str, event: Event): ...

    async def deliver_to_room(self, event: Event): ...

    async def await_updates_for(self, participant_id: str, timeout: float) -> List[dict]: ...

    async def release(self, participant_ids: Iterable[str]): ...


async def deliver(transport: Transport, events: Iterable[Event]):
    """Hand events to the transport in order. A failed delivery is logged and skipped."""
    for event in events:
        try:
            if event.is_broadcast:
                await transport.deliver_to_room(event)
            else:
                await transport.deliver_to_user(event.target, event)
        except Exception as e:
            logger.error(f"Failed to deliver {event.name} via {transport.name} to {event.scope} {event.target}: {e}",
                         exc_info=True)


async def dispatch(transport: Transport, outcome: Outcome):
    await deliver(transport, outcome.events)
    if outcome.closed:
        try:
            await transport.release(outcome.closed)
        except Exception as e:
            logger.error(f"Failed to release sessions {outcome.closed} via {transport.name}: {e}", exc_info=True)
