"""
Feed endpoints:
  GET  /feed          — the current feed, newest first, with age labels
  POST /feed/reload   — re-run the bulk load of recent posts
  POST /posts         — publish a post as the session identity

A published post is not in the response of GET /feed until the Feed Service
echoes it through the live subscription.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from feedsync.dependencies import get_active_session
from feedsync.exceptions import (
    ContentValidationError,
    IdentityNotReadyError,
    ServiceFailure,
    SubmissionInFlightError,
)
from feedsync.formatting import relative_age
from feedsync.schemas import FeedPost, FeedResponse, Post, PostSubmission
from feedsync.session import FeedSession

logger = logging.getLogger(__name__)
router = APIRouter()


def _feed_response(session: FeedSession) -> FeedResponse:
    now = datetime.now(timezone.utc)
    return FeedResponse(
        state=session.state.value,
        posts=[
            FeedPost(**post.model_dump(), age=relative_age(post, now))
            for post in session.posts
        ],
        load_error=session.load_error,
    )


@router.get("/feed", response_model=FeedResponse)
async def get_feed(session: FeedSession = Depends(get_active_session)):
    return _feed_response(session)


@router.post("/feed/reload", response_model=FeedResponse)
async def reload_feed(
    limit: Optional[int] = Query(None, ge=1, le=100),
    session: FeedSession = Depends(get_active_session),
):
    await session.reload(limit)
    if session.load_error:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=session.load_error)
    return _feed_response(session)


@router.post("/posts", response_model=Post, status_code=status.HTTP_202_ACCEPTED)
async def create_post(body: PostSubmission, session: FeedSession = Depends(get_active_session)):
    try:
        return await session.submit(body.content)
    except ContentValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail={"reason": exc.reason, "message": str(exc)},
        )
    except SubmissionInFlightError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except IdentityNotReadyError as exc:
        raise HTTPException(status_code=status.HTTP_425_TOO_EARLY, detail=str(exc))
    except ServiceFailure as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
