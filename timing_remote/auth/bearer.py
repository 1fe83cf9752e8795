"""Authorization header parsing."""

from timing_remote.core.exceptions import UnauthorizedError


def parse_bearer(header: str | None) -> str:
    """Return the credential from ``"Bearer <key>"``.

    The header must split on single spaces into exactly two tokens with the
    first one ``Bearer``; anything else is refused.
    """
    if not header:
        raise UnauthorizedError("Invalid Authorization Header")
    parts = header.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        raise UnauthorizedError("Invalid Authorization Header")
    return parts[1]
