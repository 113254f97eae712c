# crcfind/errors.py
from __future__ import annotations


class CrcFindError(Exception):
    """Base class for every error raised by the engine."""


class TransportError(CrcFindError):
    """HTTP/connection failure or a JSON-RPC error payload. Never retried by the engine."""

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class NormalizationError(CrcFindError):
    """A raw record is missing a required field or carries a non-hex quantity."""


class ConfigError(CrcFindError, ValueError):
    pass


class SubscriptionError(CrcFindError):
    pass
