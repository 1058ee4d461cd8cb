from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ..core.config import Settings, get_settings
from ..core.dependencies import get_notifier
from ..core.security import require_session
from ..services import ChangeNotifier

router = APIRouter(tags=["events"])


async def change_stream(
    request: Request, notifier: ChangeNotifier, ping_seconds: float
) -> AsyncIterator[str]:
    subscription = notifier.subscribe()
    try:
        while not await request.is_disconnected():
            event = await subscription.next_event(ping_seconds)
            yield event.encode()
    finally:
        # Runs when the transport closes the stream.
        notifier.unsubscribe(subscription)


@router.get("/events", dependencies=[Depends(require_session)])
async def events(
    request: Request,
    notifier: ChangeNotifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    return StreamingResponse(
        change_stream(request, notifier, settings.events_ping_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache, no-transform", "X-Accel-Buffering": "no"},
    )
