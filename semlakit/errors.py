"""Error values carrying a domain, a numeric code, a message and an optional cause."""

from __future__ import annotations

from typing import Optional

MESSAGE_LIMIT = 2047
"""Longest message kept by :func:`format_error`; longer text is cut."""


class MlleError(Exception):
    """An error with a domain, a code, a human-readable message and an optional cause."""

    def __init__(
        self,
        domain: int,
        code: int,
        message: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message if message is not None else "")
        self.domain = domain
        self.code = code
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message if self.message is not None else ""

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(domain={self.domain!r}, code={self.code!r}, "
            f"message={self.message!r})"
        )


def format_error(domain: int, code: int, template: str, *args: object) -> MlleError:
    """Build an :class:`MlleError` whose message is ``template`` formatted with ``args``.

    The message is limited to :data:`MESSAGE_LIMIT` characters.
    """
    message = template % args if args else template
    return MlleError(domain, code, message[:MESSAGE_LIMIT])