"""
Identity resolution: turns an authenticated user into a display identity.

Attempts, first success wins:
  1. Persisted profile in the Directory Service (returned verbatim).
  2. Create a profile from sign-up metadata (nickname or full name present).
  3. In-memory identity derived from metadata / e-mail, never persisted.

Directory failures never reach the caller: they degrade to the next step.
"""
import logging
from typing import Optional

from opentelemetry import trace

from feedsync.exceptions import ProfileConflict
from feedsync.protocols import DirectoryService
from feedsync.schemas import AuthUser, Identity
from feedsync.telemetry import IDENTITY_RESOLUTIONS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_NICKNAME = "User"
DEFAULT_USERNAME = "user"


def local_part_of(email: Optional[str]) -> Optional[str]:
    """Text before the first '@', or None if there is no '@' (or nothing before it)."""
    if not email or "@" not in email:
        return None
    return email.split("@", 1)[0] or None


def _has_signup_metadata(auth_user: AuthUser) -> bool:
    md = auth_user.user_metadata
    return md is not None and bool(md.nickname or md.full_name)


def derive_identity(auth_user: AuthUser) -> Identity:
    """Build the identity a new profile would get, without persisting it."""
    local = local_part_of(auth_user.email)
    md = auth_user.user_metadata
    if not _has_signup_metadata(auth_user):
        return Identity(
            id=auth_user.id,
            full_name="",
            nickname=local or DEFAULT_NICKNAME,
            username=local or DEFAULT_USERNAME,
        )
    return Identity(
        id=auth_user.id,
        full_name=md.full_name or "",
        nickname=md.nickname or md.full_name or DEFAULT_NICKNAME,
        username=md.username or local or DEFAULT_USERNAME,
    )


class IdentityResolver:
    def __init__(self, directory: DirectoryService) -> None:
        self._directory = directory

    async def _lookup(self, user_id: str) -> Optional[Identity]:
        try:
            return await self._directory.get_profile(user_id)
        except Exception as exc:
            logger.warning("Profile lookup failed for %s: %s", user_id, exc)
            return None

    async def resolve(self, auth_user: AuthUser) -> Identity:
        with tracer.start_as_current_span("resolve_identity") as span:
            span.set_attribute("user.id", auth_user.id)

            profile = await self._lookup(auth_user.id)
            if profile is not None:
                IDENTITY_RESOLUTIONS_TOTAL.labels(source="profile").inc()
                span.set_attribute("identity.source", "profile")
                return profile

            derived = derive_identity(auth_user)

            if _has_signup_metadata(auth_user):
                try:
                    created = await self._directory.create_profile(derived)
                except ProfileConflict:
                    # A concurrent resolution won the race; use its record
                    logger.info("Profile for %s already exists, re-fetching", auth_user.id)
                    existing = await self._lookup(auth_user.id)
                    if existing is not None:
                        IDENTITY_RESOLUTIONS_TOTAL.labels(source="profile").inc()
                        span.set_attribute("identity.source", "profile")
                        return existing
                except Exception as exc:
                    logger.warning(
                        "Could not create profile for %s: %s, using in-memory identity",
                        auth_user.id,
                        exc,
                    )
                else:
                    if created is not None:
                        IDENTITY_RESOLUTIONS_TOTAL.labels(source="created").inc()
                        span.set_attribute("identity.source", "created")
                        logger.info("Created profile for %s (@%s)", created.id, created.username)
                        return created
                    logger.warning("Directory returned no profile for %s", auth_user.id)

            IDENTITY_RESOLUTIONS_TOTAL.labels(source="fallback").inc()
            span.set_attribute("identity.source", "fallback")
            logger.info("Using fallback identity for %s (@%s)", derived.id, derived.username)
            return derived
