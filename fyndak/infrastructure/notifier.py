"""
Realtime Change Notifier

Delivers row-level change events for the products and bids tables to
subscribers: in-process callbacks and WebSocket clients.

Architecture:
┌──────────────┐
│  Publisher   │ (API request, sweeper)
└──────┬───────┘
       │ PUBLISH "changes:bids" {"table": "bids", "event": "INSERT", ...}
       ↓
┌──────────────────────────────────────┐
│          Redis Pub/Sub               │
└──────┬────────────────────┬──────────┘
       ↓                    ↓
┌──────────────┐    ┌──────────────┐
│ API server 1 │    │ API server 2 │
└──────┬───────┘    └──────┬───────┘
       ↓                    ↓
  callbacks +          callbacks +
  WebSockets           WebSockets

Without a Redis connection events go straight to the local
subscribers of the publishing process.
"""
import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, Union

import redis.asyncio as redis
from fastapi import WebSocket

logger = logging.getLogger(__name__)

TABLES = ("products", "bids")
EVENTS = ("INSERT", "UPDATE", "DELETE")
ALL_EVENTS = "*"

ChangeCallback = Callable[[dict], Union[None, Awaitable[None]]]


@dataclass(eq=False)
class Subscription:
    """A registered callback and its event filter"""
    table: str
    event: str
    callback: ChangeCallback

    def matches(self, message: dict) -> bool:
        return self.event == ALL_EVENTS or self.event == message.get("event")


def validate_channel(table: str, event: str = ALL_EVENTS):
    """
    Raises:
        ValueError: If table or event type is unknown
    """
    if table not in TABLES:
        raise ValueError(f"Unknown table '{table}'")
    if event != ALL_EVENTS and event not in EVENTS:
        raise ValueError(f"Unknown event type '{event}'")


class ChangeNotifier:
    """
    Publishes change events and fans them out to subscribers

    Usage:
        notifier = ChangeNotifier(redis_url)
        await notifier.connect()
        unsubscribe = notifier.subscribe("products", on_change, event="UPDATE")
        await notifier.publish("products", "UPDATE", new=product.to_dict())
    """

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url
        self.redis = None           # Redis client for publishing
        self.pubsub = None          # Redis Pub/Sub client for subscribing
        self._listen_task: Optional[asyncio.Task] = None

        # table -> subscriptions
        self.subscriptions: Dict[str, List[Subscription]] = {table: [] for table in TABLES}

        # table -> {(websocket, event)}
        self.active_connections: Dict[str, Set[Tuple[WebSocket, str]]] = {}

        # Statistics
        self.messages_received = 0
        self.messages_published = 0
        self.callback_errors = 0

    @property
    def is_connected(self) -> bool:
        return self.redis is not None

    @staticmethod
    def channel_name(table: str) -> str:
        """Pattern: "changes:{table}" """
        return f"changes:{table}"

    async def connect(self):
        """
        Open the publish connection and the subscribe connection

        Does nothing when no Redis URL is configured.
        """
        if not self.redis_url:
            logger.info("Change notifier running without Redis (local dispatch)")
            return

        self.redis = redis.from_url(
            self.redis_url,
            encoding="utf-8",
            decode_responses=True
        )
        self.pubsub = self.redis.pubsub()

        try:
            await self.pubsub.subscribe(*(self.channel_name(table) for table in TABLES))
        except redis.RedisError as e:
            logger.error(f"Redis unavailable, change notifier using local dispatch: {e}")
            self.redis = None
            self.pubsub = None
            return

        self._listen_task = asyncio.create_task(self._listen_loop())
        logger.info("Change notifier connected to Redis")

    async def disconnect(self):
        """Clean shutdown"""
        if self._listen_task:
            self._listen_task.cancel()
            try:
                await self._listen_task
            except asyncio.CancelledError:
                pass
            self._listen_task = None

        if self.pubsub:
            await self.pubsub.unsubscribe()
            await self.pubsub.close()
            self.pubsub = None

        if self.redis:
            await self.redis.close()
            self.redis = None

        logger.info("Change notifier disconnected")

    def subscribe(self, table: str, callback: ChangeCallback, event: str = ALL_EVENTS) -> Callable[[], None]:
        """
        Register a callback for a table's change events

        Args:
            table: "products" or "bids"
            callback: Called with the change message; may be async
            event: "INSERT", "UPDATE", "DELETE" or "*"

        Returns:
            Function that removes the subscription
        """
        validate_channel(table, event)
        subscription = Subscription(table=table, event=event, callback=callback)
        self.subscriptions[table].append(subscription)

        def unsubscribe():
            if subscription in self.subscriptions[table]:
                self.subscriptions[table].remove(subscription)

        return unsubscribe

    async def publish(self, table: str, event: str, new: Optional[dict] = None, old: Optional[dict] = None):
        """
        Publish a change event

        Publishing never fails the caller: the change it describes is
        already committed.
        """
        message = {"table": table, "event": event, "new": new, "old": old}
        self.messages_published += 1

        if self.redis is not None:
            try:
                await self.redis.publish(self.channel_name(table), json.dumps(message, default=str))
                return
            except redis.RedisError as e:
                logger.error(f"Redis publish failed, dispatching locally: {e}")

        await self.dispatch(message)

    async def _listen_loop(self):
        """Receive messages from Redis and dispatch them locally"""
        try:
            async for message in self.pubsub.listen():
                if message["type"] != "message":
                    continue

                try:
                    data = json.loads(message["data"])
                except (TypeError, ValueError) as e:
                    logger.error(f"Dropping malformed change message: {e}")
                    continue

                self.messages_received += 1
                await self.dispatch(data)

        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Change notifier listen loop stopped, falling back to local dispatch")
            self.redis = None
            self.pubsub = None

    async def dispatch(self, message: dict):
        """Deliver a change message to local callbacks and WebSockets"""
        table = message.get("table")

        for subscription in list(self.subscriptions.get(table, [])):
            if not subscription.matches(message):
                continue
            try:
                result = subscription.callback(message)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                self.callback_errors += 1
                logger.exception(f"Change subscriber failed for {table}")

        connections = self.active_connections.get(table)
        if not connections:
            return

        disconnected = set()
        for websocket, event in connections.copy():
            if event != ALL_EVENTS and event != message.get("event"):
                continue
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.warning(f"WebSocket send error: {e}")
                disconnected.add((websocket, event))

        for websocket, event in disconnected:
            self.remove_connection(websocket, table, event)

    async def add_connection(self, websocket: WebSocket, table: str, event: str = ALL_EVENTS):
        """Accept a WebSocket and register it for a table's events"""
        validate_channel(table, event)
        await websocket.accept()
        self.active_connections.setdefault(table, set()).add((websocket, event))
        logger.info(f"WebSocket subscribed to {table} ({event}), local: {self.get_connection_count(table)}")

    def remove_connection(self, websocket: WebSocket, table: str, event: str = ALL_EVENTS):
        connections = self.active_connections.get(table)
        if connections is None:
            return

        connections.discard((websocket, event))
        if not connections:
            del self.active_connections[table]

    def get_connection_count(self, table: str) -> int:
        """Number of local WebSocket connections for a table"""
        return len(self.active_connections.get(table, ()))

    def get_stats(self) -> Dict[str, Any]:
        return {
            "is_connected": self.is_connected,
            "subscriptions": sum(len(subs) for subs in self.subscriptions.values()),
            "messages_received": self.messages_received,
            "messages_published": self.messages_published,
            "callback_errors": self.callback_errors,
            "total_connections": sum(len(conns) for conns in self.active_connections.values()),
        }
