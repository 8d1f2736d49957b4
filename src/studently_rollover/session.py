"""Session providers supplying bearer tokens to the API client."""

import logging
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class SessionProvider(Protocol):
    """Source of bearer tokens and sink for session-expiry notifications."""

    async def get_token(self) -> Optional[str]:
        ...

    async def on_expire(self) -> None:
        ...


class TokenSession:
    """Session backed by a pre-issued access token.

    Once the backend rejects the token the session forgets it, so later
    requests report that authentication is required instead of hitting
    the backend with a token known to be dead.
    """

    def __init__(self, token: Optional[str]):
        self._token = token or None
        self.expired = False

    async def get_token(self) -> Optional[str]:
        return self._token

    async def on_expire(self) -> None:
        if self._token is not None:
            logger.warning("Session expired; discarding access token")
        self._token = None
        self.expired = True
