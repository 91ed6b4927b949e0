from fastapi import HTTPException, Request

from feedsync.protocols import DirectoryService, FeedService
from feedsync.session import FeedSession


async def get_directory(request: Request) -> DirectoryService:
    """Directory Service client from app state"""
    return request.app.state.directory


async def get_feed_service(request: Request) -> FeedService:
    """Feed Service client from app state"""
    return request.app.state.feed_service


async def get_active_session(request: Request) -> FeedSession:
    """The running feed session; 404 when nobody is signed in."""
    session = getattr(request.app.state, "feed_session", None)
    if session is None or not session.active:
        raise HTTPException(status_code=404, detail="No active session")
    return session
