import os
import logging
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine, AsyncSession
from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, Integer, String, DateTime, JSON
from datetime import datetime, timezone

# Setup logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(message)s",
)
logger = logging.getLogger("microservice")

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class Event(Base):
    __tablename__ = "events"
    id = Column(Integer, primary_key=True, index=True)
    topic = Column(String, index=True, nullable=False)
    headers = Column(JSON, default=dict)
    payload = Column(JSON)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    source = Column(String, default="system")
    status = Column(String, default="new")


def create_engine_from_url(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, echo=False, future=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory shared by the repository and the event store."""
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def create_schema(engine: AsyncEngine) -> None:
    """
    Create all tables registered on ``Base`` that do not exist yet.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class MCPResponse(JSONResponse):
    """
    Standard MCP protocol response for all API endpoints.
    """
    def __init__(self, data: Any = None, message: str = "success", status: str = "ok", **kwargs):
        content = {
            "status": status,
            "message": message,
            "data": data,
        }
        super().__init__(content=content, **kwargs)


class BaseMicroservice:
    """
    Base class for all services. Provides:
    - Error/event logging
    - MCP protocol response
    """
    def __init__(self, service_name: str = "microservice"):
        self.service_name = service_name
        self.logger = logger if service_name == "microservice" else logger.getChild(service_name)

    def mcp_response(self, data: Any = None, message: str = "success", status: str = "ok"):
        """
        Return a standard MCP protocol response.
        """
        return MCPResponse(data=data, message=message, status=status)

    def log_event(self, event: str, details: Optional[Dict[str, Any]] = None):
        self.logger.info(f"EVENT: {event} | Details: {details}")

    def log_error(self, error: Exception, context: str = ""):
        self.logger.error(f"ERROR: {error.__class__.__name__}: {error} | Context: {context}")
