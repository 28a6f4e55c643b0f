"""Public event surface of the session client."""

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# Event name -> number of positional payload arguments
EVENTS: Dict[str, int] = {
    "qr": 1,
    "pairingCode": 1,
    "ready": 0,
    "reconnect": 0,
    "logout": 0,
    "error": 1,
    "message": 1,
    "messages.delete": 1,
    "messages.update": 1,
}


class EventEmitter:
    """
    Emitter for the fixed set of client events.

    Handlers may be plain functions or coroutine functions. They run in
    registration order, one after another, so events of one name are seen in
    the order they were emitted. A failing handler is logged and does not stop
    the remaining handlers.

    Example:
        >>> emitter = EventEmitter()
        >>> @emitter.on("qr")
        ... async def show(code):
        ...     print(code)
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Callable]] = {name: [] for name in EVENTS}

    @staticmethod
    def _check(event: str) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown event: {event}")

    def on(self, event: str, handler: Optional[Callable] = None) -> Callable:
        """
        Register a handler for an event.

        Can be called directly or used as a decorator.

        Returns:
            The handler (for decorator usage)
        """
        self._check(event)

        def register(func: Callable) -> Callable:
            self._handlers[event].append(func)
            return func

        if handler is None:
            return register
        return register(handler)

    def off(self, event: str, handler: Callable) -> None:
        """Remove a previously registered handler."""
        self._check(event)
        try:
            self._handlers[event].remove(handler)
        except ValueError:
            pass

    def listener_count(self, event: str) -> int:
        self._check(event)
        return len(self._handlers[event])

    async def emit(self, event: str, *args: Any) -> None:
        """
        Deliver an event to every current handler.

        Raises:
            ValueError: If the event name or payload arity is wrong
        """
        self._check(event)
        if len(args) != EVENTS[event]:
            raise ValueError(
                f"Event {event} takes {EVENTS[event]} argument(s), got {len(args)}"
            )

        handlers = list(self._handlers[event])
        if event == "error" and not handlers:
            logger.error(f"Unhandled error event: {args[0]}")
            return

        for handler in handlers:
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"{event} handler error: {e}")
