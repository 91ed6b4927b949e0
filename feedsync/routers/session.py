"""
Session endpoints:
  POST   /session           — start a session for an authenticated user
  DELETE /session           — end it and release the live subscription
  GET    /session/identity  — the resolved display identity
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from feedsync.dependencies import get_active_session, get_directory, get_feed_service
from feedsync.exceptions import InvalidStateError, ServiceFailure
from feedsync.protocols import DirectoryService, FeedService
from feedsync.schemas import AuthUser, Identity
from feedsync.session import FeedSession

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=Identity, status_code=status.HTTP_201_CREATED)
async def start_session(
    body: AuthUser,
    request: Request,
    directory: DirectoryService = Depends(get_directory),
    feed_service: FeedService = Depends(get_feed_service),
):
    current = getattr(request.app.state, "feed_session", None)
    if current is not None and not current.closed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A session is already active, end it first",
        )

    # Claim the slot before the first await so concurrent starts see it
    session = FeedSession(directory, feed_service)
    request.app.state.feed_session = session
    try:
        return await session.start(body)
    except ServiceFailure as exc:
        await _release(request, session)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    except InvalidStateError:
        # DELETE /session arrived while this session was still starting
        await _release(request, session)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Session ended while it was starting",
        )


async def _release(request: Request, session: FeedSession) -> None:
    await session.end()
    if request.app.state.feed_session is session:
        request.app.state.feed_session = None


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def end_session(request: Request):
    session = getattr(request.app.state, "feed_session", None)
    if session is not None:
        await session.end()
    request.app.state.feed_session = None


@router.get("/identity", response_model=Identity)
async def get_identity(session: FeedSession = Depends(get_active_session)):
    return session.identity
