import asyncio
import inspect
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from agrilink.models.events import TOPIC_PAYLOADS, Topic

logger = logging.getLogger(__name__)

Handler = Callable[[Topic, Any], Any]

_subscription_ids = itertools.count(1)


@dataclass(frozen=True, eq=False)
class Subscription:
    """Opaque token returned by subscribe(), consumed by unsubscribe()."""
    topic: Topic
    handler: Handler
    id: int = field(default_factory=lambda: next(_subscription_ids))


class EventHub:
    """
    In-process publish/subscribe registry.

    Handlers are called as handler(topic, payload) in registration order.
    Coroutine handlers are scheduled as tasks on the running loop.
    """

    def __init__(self):
        self._subscribers: Dict[Topic, List[Subscription]] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def init(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop

    def subscribe(self, topic: Topic, handler: Handler) -> Subscription:
        subscription = Subscription(topic, handler)
        self._subscribers.setdefault(topic, []).append(subscription)
        logger.debug(f"Subscribed to {topic.value} (#{subscription.id})")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove exactly the registration behind this token."""
        subscriptions = self._subscribers.get(subscription.topic, [])
        for i, existing in enumerate(subscriptions):
            if existing is subscription:
                del subscriptions[i]
                logger.debug(f"Unsubscribed from {subscription.topic.value} (#{subscription.id})")
                return True
        return False

    def unsubscribe_handler(self, topic: Topic, handler: Handler) -> bool:
        """Remove the first registration of handler on topic."""
        for subscription in self._subscribers.get(topic, []):
            if subscription.handler == handler:
                return self.unsubscribe(subscription)
        return False

    def subscriber_count(self, topic: Topic) -> int:
        return len(self._subscribers.get(topic, []))

    def clear(self):
        self._subscribers.clear()

    def publish(self, topic: Topic, payload: Any):
        expected = TOPIC_PAYLOADS[topic]
        if not isinstance(payload, expected):
            raise TypeError(f"Topic {topic.value} expects {expected.__name__}, got {type(payload).__name__}")

        # Copy so handlers may (un)subscribe while we iterate
        subscriptions = list(self._subscribers.get(topic, []))
        for subscription in subscriptions:
            handler = subscription.handler
            try:
                if inspect.iscoroutinefunction(handler):
                    self._schedule(topic, handler, payload)
                else:
                    handler(topic, payload)
            except Exception:
                logger.exception(f"Error handling message on topic {topic.value}")

    def _schedule(self, topic: Topic, handler: Handler, payload: Any):
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning(f"EventHub loop not initialized. Cannot dispatch async handler for {topic.value}")
                return
        task = loop.create_task(handler(topic, payload))
        task.add_done_callback(lambda t: self._report(topic, t))

    @staticmethod
    def _report(topic: Topic, task: asyncio.Task):
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Error handling message on topic {topic.value}", exc_info=task.exception())
