"""Exception hierarchy for the feed."""

from __future__ import annotations


class FeedError(Exception):
    """Base class for every error the feed surfaces to the operator."""


class BootstrapError(FeedError):
    """Could not obtain a token and endpoint from the bullet endpoint."""


class HandshakeError(FeedError):
    """The first message on the socket was not a usable welcome."""


class TransportError(FeedError):
    """The websocket closed or failed mid-session."""


class DecodeError(FeedError, ValueError):
    """A single inbound payload could not be decoded. Never fatal while streaming."""

    def __init__(self, message: str, raw: str | bytes | None = None) -> None:
        super().__init__(message)
        self.raw = raw
