"""
Message Bus

Routes booking commands to their single handler and fans committed
booking events out to every subscriber (refund execution, notifications
living outside this project).
"""

from collections import defaultdict
from typing import Any, Callable, DefaultDict, Dict, Iterable, List, Type
import logging

from shared.domain.base import DomainEvent
from shared.domain.exceptions import DomainError

logger = logging.getLogger(__name__)


def _handler_name(handler: Callable) -> str:
    return getattr(handler, '__qualname__', None) or type(handler).__name__


class MessageBus:
    """
    Commands: exactly one handler per command type, result returned to the caller
    Events: any number of subscribers, failures isolated per subscriber
    """

    def __init__(self):
        self._subscribers: DefaultDict[Type[DomainEvent], List[Callable]] = defaultdict(list)
        self._command_handlers: Dict[Type, Callable] = {}

    def register_event_handler(self, event_type: Type[DomainEvent], handler: Callable[[DomainEvent], None]):
        """Subscribe ``handler`` to ``event_type``; subscribing twice is a no-op."""
        subscribers = self._subscribers[event_type]
        if handler in subscribers:
            return
        subscribers.append(handler)
        logger.debug(f"Subscribed {_handler_name(handler)} to {event_type.__name__}")

    def register_command_handler(self, command_type: Type, handler: Callable[[Any], Any]):
        if command_type in self._command_handlers:
            raise ValueError(f"{command_type.__name__} already has a handler")
        self._command_handlers[command_type] = handler
        logger.debug(f"Registered {_handler_name(handler)} for {command_type.__name__}")

    def has_command_handler(self, command_type: Type) -> bool:
        return command_type in self._command_handlers

    def handle_command(self, command: Any) -> Any:
        """
        Run the handler registered for ``type(command)``

        Domain errors are business outcomes and are logged at INFO; anything
        else is logged with a traceback. Both propagate to the caller.
        """
        command_name = type(command).__name__
        try:
            handler = self._command_handlers[type(command)]
        except KeyError:
            raise ValueError(f"No handler registered for {command_name}") from None

        actor = getattr(command, 'actor', None)
        actor_id = getattr(actor, 'user_id', 'system')
        logger.info(f"{command_name} requested by {actor_id}")
        try:
            return handler(command)
        except DomainError as e:
            logger.info(f"{command_name} rejected: {e.message}", extra={'error': e.to_dict()})
            raise
        except Exception:
            logger.exception(f"{command_name} failed unexpectedly")
            raise

    def publish_events(self, events: Iterable[DomainEvent]):
        """Deliver each event to its subscribers; a failing subscriber does not stop the rest."""
        for event in events:
            subscribers = self._subscribers.get(type(event), [])
            logger.info(
                f"Publishing {event.name} to {len(subscribers)} subscriber(s)",
                extra={'domain_event': event.to_dict()},
            )
            for subscriber in subscribers:
                try:
                    subscriber(event)
                except Exception:
                    logger.exception(f"{_handler_name(subscriber)} failed on {event.name} {event.event_id}")


# Process-wide bus, wired by BookingsConfig.ready
message_bus = MessageBus()
