"""
Bearer token authentication for the analytics API.

USER_TOKENS maps API tokens to platform user ids ("token:user_uuid,...").
The resolved user id is what the analytics service scopes every query to,
so entries whose user id is not a UUID are dropped at startup instead of
failing later on every request. Token lookup compares against every
configured token with secrets.compare_digest.

CHANGELOG:
- 2026-10-16: Reject non-UUID user ids and duplicate tokens (STORY-115)
- 2026-10-15: Map tokens to user ids instead of devices (STORY-112)
- 2026-10-12: Initial creation (STORY-102)

TODO:
- None
"""

import logging
import secrets
import uuid

from fastapi import HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def _split_entry(entry: str) -> tuple[str, str] | None:
    """Split one ``token:user_id`` entry, or return None if it is unusable."""
    token, sep, user_id = entry.partition(":")
    token, user_id = token.strip(), user_id.strip()
    if not sep or not token or not user_id:
        return None
    return token, user_id


def parse_user_tokens(raw: str) -> dict[str, str]:
    """Parse USER_TOKENS into a token -> user_id mapping.

    Malformed entries, entries whose user id is not a UUID, and repeated
    tokens are skipped with a warning naming their position (never the token).
    """
    token_map: dict[str, str] = {}
    for position, entry in enumerate((raw or "").split(",")):
        if not entry.strip():
            continue
        parsed = _split_entry(entry)
        if parsed is None:
            logger.warning("USER_TOKENS entry %d is not token:user_id", position)
            continue
        token, user_id = parsed
        if not _is_uuid(user_id):
            logger.warning("USER_TOKENS entry %d has a non-UUID user id", position)
            continue
        if token in token_map:
            logger.warning("USER_TOKENS entry %d repeats an earlier token", position)
            continue
        token_map[token] = user_id
    return token_map


def verify_bearer_token(token: str, token_map: dict[str, str]) -> str | None:
    """Return the user id registered for *token*, or None."""
    if not token:
        return None
    presented = token.encode("utf-8")
    matched: str | None = None
    for registered, user_id in token_map.items():
        # No early exit: every comparison runs whether or not one matched.
        if secrets.compare_digest(presented, registered.encode("utf-8")):
            matched = user_id
    return matched


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"}
    )


class BearerAuth:
    """Request dependency resolving the caller's user id.

    Attributes:
        token_map: Mapping of valid token -> user_id.
        scheme: HTTPBearer scheme, registered for the OpenAPI docs.
    """

    def __init__(self, token_map: dict[str, str]) -> None:
        self.token_map = token_map
        self.scheme = HTTPBearer(auto_error=False)

    async def verify(self, request: Request) -> str:
        """Return the user id for the request's bearer token.

        Raises:
            HTTPException: 401 when the header is missing or the token unknown.
        """
        credentials: HTTPAuthorizationCredentials | None = await self.scheme(request)
        if credentials is None:
            raise _unauthorized("Missing authorization credentials.")

        user_id = verify_bearer_token(credentials.credentials, self.token_map)
        if user_id is None:
            logger.info("Rejected bearer token for %s", request.url.path)
            raise _unauthorized("Invalid or expired token.")
        return user_id
