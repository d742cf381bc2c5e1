"""Minimal synchronous publish/subscribe channel."""

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

_token_counter = itertools.count(1)


@dataclass(frozen=True)
class SubscriptionToken:
    """Handle returned by subscribe(); pass it to unsubscribe()."""

    channel: str
    id: int


class EventChannel:
    """
    A named channel of handlers.

    Handlers run in subscription order on the publisher's thread. A failing
    handler is logged and skipped; it never breaks the publisher or the
    remaining handlers.
    """

    def __init__(self, name: str):
        self.name = name
        self._handlers: dict[int, Callable[..., Any]] = {}

    def subscribe(self, handler: Callable[..., Any]) -> SubscriptionToken:
        token = SubscriptionToken(channel=self.name, id=next(_token_counter))
        self._handlers[token.id] = handler
        logger.debug("Subscribed handler %d to %s", token.id, self.name)
        return token

    def unsubscribe(self, token: SubscriptionToken) -> bool:
        """Remove a handler. Returns False if the token is unknown."""
        if token.channel != self.name:
            return False
        return self._handlers.pop(token.id, None) is not None

    def publish(self, *args: Any) -> None:
        for handler_id, handler in list(self._handlers.items()):
            try:
                handler(*args)
            except Exception:
                logger.exception(
                    "Handler %d failed on channel %s", handler_id, self.name
                )

    def __len__(self) -> int:
        return len(self._handlers)
