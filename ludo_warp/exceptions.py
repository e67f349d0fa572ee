class LudoWarpError(Exception):
    """Base exception for the warp ludo engine."""

    pass


class SessionNotFoundError(LudoWarpError):
    """Raised when a session code is unknown to the store."""

    pass


class LobbyFullError(LudoWarpError):
    """Raised when every player slot of a session is already taken."""

    pass


class PublishError(LudoWarpError):
    """Raised when a state patch could not be written to the store (retryable)."""

    pass
