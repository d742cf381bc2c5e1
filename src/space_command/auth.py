"""Bearer token auth and the read-only switch for the notes server."""

import hmac
import logging

from fastmcp.server.auth import AccessToken, TokenVerifier

from space_command.config import Config

logger = logging.getLogger(__name__)

READ_SCOPE = "read"
WRITE_SCOPE = "write"


class AuthError(Exception):
    """A request was refused: bad token, or an edit on a read-only server."""


def granted_scopes(config: Config) -> list[str]:
    """Scopes a verified client receives. Read-only servers never grant write."""
    if config.read_only:
        return [READ_SCOPE]
    return [READ_SCOPE, WRITE_SCOPE]


class BearerTokenVerifier(TokenVerifier):
    """Accepts exactly the token in SPACE_AUTH_TOKEN, or anyone when it is unset."""

    def __init__(self, config: Config):
        self._config = config

    async def verify_token(self, token: str) -> AccessToken | None:
        expected = self._config.auth_token
        if expected is None:
            return AccessToken(
                token=token or "anonymous",
                client_id="anonymous",
                scopes=granted_scopes(self._config),
            )

        if not token:
            logger.warning("Rejected request without a bearer token")
            return None
        if not hmac.compare_digest(token, expected):
            logger.warning("Rejected request with an unknown bearer token")
            return None

        return AccessToken(
            token=token, client_id="authenticated", scopes=granted_scopes(self._config)
        )


def get_auth_provider(config: Config) -> BearerTokenVerifier | None:
    if config.auth_token is None:
        return None
    return BearerTokenVerifier(config)


def check_write_permission(config: Config, action: str = "write") -> None:
    """Raise AuthError when the notes may not be edited."""
    if config.read_only:
        logger.warning("Refused %s: server is in read-only mode", action)
        raise AuthError("Server is in read-only mode")
