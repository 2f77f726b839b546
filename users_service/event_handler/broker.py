"""
Event brokers.

A broker publishes a message to a named topic and notifies in-process
subscribers. Messages carry string headers and a JSON body.
"""
import json
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, runtime_checkable
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from users_service.base_microservice import Event, utcnow
from users_service.users.exceptions import PublishError

logger = logging.getLogger(__name__)


class BrokerMessage(BaseModel):
    header: Dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], header: Optional[Dict[str, str]] = None) -> "BrokerMessage":
        return cls(header=header or {}, body=json.dumps(payload).encode("utf-8"))

    def payload(self) -> Any:
        return json.loads(self.body) if self.body else None


class PublishedEvent(BaseModel):
    topic: str
    headers: Dict[str, str]
    payload: Any
    created_at: datetime
    source: str
    status: str


Subscriber = Callable[[str, BrokerMessage], Awaitable[None]]


class Broker(Protocol):
    async def publish(self, topic: str, message: BrokerMessage) -> None: ...


@runtime_checkable
class EventLog(Protocol):
    async def list_events(self, topic: Optional[str] = None) -> List[PublishedEvent]: ...


class BaseBroker:
    """
    Subscriber registry shared by the broker implementations.
    """

    def __init__(self, source: str = "users"):
        self.source = source
        self.subscribers: Dict[str, List[Subscriber]] = {}

    def subscribe(self, topic: str, callback: Subscriber) -> None:
        """
        Register a coroutine callback for a given topic.
        """
        self.subscribers.setdefault(topic, []).append(callback)

    async def _notify_subscribers(self, topic: str, message: BrokerMessage) -> None:
        for callback in self.subscribers.get(topic, []):
            await callback(topic, message)


class InMemoryBroker(BaseBroker):
    """Keeps published events in memory."""

    def __init__(self, source: str = "users"):
        super().__init__(source)
        self.events: List[PublishedEvent] = []

    async def publish(self, topic: str, message: BrokerMessage) -> None:
        self.events.append(
            PublishedEvent(
                topic=topic,
                headers=message.header,
                payload=message.payload(),
                created_at=utcnow(),
                source=self.source,
                status="processed",
            )
        )
        await self._notify_subscribers(topic, message)

    async def list_events(self, topic: Optional[str] = None) -> List[PublishedEvent]:
        return [e for e in self.events if topic is None or e.topic == topic]


class DatabaseBroker(BaseBroker):
    """
    Persists every published message to the events table, then notifies
    subscribers.
    """

    def __init__(self, session_factory: async_sessionmaker, source: str = "users"):
        super().__init__(source)
        self._session_factory = session_factory

    async def publish(self, topic: str, message: BrokerMessage) -> None:
        try:
            async with self._session_factory() as session:
                event = Event(
                    topic=topic,
                    headers=message.header,
                    payload=message.payload(),
                    source=self.source,
                    status="new",
                )
                session.add(event)
                await session.commit()
        except SQLAlchemyError as e:
            raise PublishError(topic) from e
        logger.info(f"EVENT: {topic} | Headers: {message.header}")
        await self._notify_subscribers(topic, message)

    async def list_events(self, topic: Optional[str] = None) -> List[PublishedEvent]:
        async with self._session_factory() as session:
            stmt = select(Event).order_by(Event.id)
            if topic:
                stmt = stmt.where(Event.topic == topic)
            result = await session.execute(stmt)
            return [
                PublishedEvent(
                    topic=e.topic,
                    headers=e.headers or {},
                    payload=e.payload,
                    created_at=e.created_at,
                    source=e.source,
                    status=e.status,
                )
                for e in result.scalars().all()
            ]
