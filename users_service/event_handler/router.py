from fastapi import APIRouter, Query, Request
from users_service.base_microservice import BaseMicroservice
from users_service.event_handler.broker import EventLog

# Initialize router
router = APIRouter()
event_handler = BaseMicroservice()


@router.get("/")
async def get_events(request: Request, topic: str = Query(None)):
    """
    Retrieve published events (optionally filter by topic)
    """
    broker = getattr(request.app.state, "broker", None)
    if not isinstance(broker, EventLog):
        return event_handler.mcp_response(data=[], message="Event listing not supported by this broker")
    events = await broker.list_events(topic)
    return event_handler.mcp_response(data=[{
        "topic": e.topic,
        "headers": e.headers,
        "payload": e.payload,
        "created_at": e.created_at.isoformat(),
        "source": e.source,
        "status": e.status,
    } for e in events])
