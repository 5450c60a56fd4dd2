"""
Error types raised by uitfkraken.

Transport failures are not wrapped: `requests` exceptions propagate unchanged
so callers see the real cause. Only configuration and per-record parsing
problems get their own types.
"""

from __future__ import annotations


class UitfKrakenError(RuntimeError):
    """Base class for uitfkraken errors."""


class ConfigError(UitfKrakenError):
    pass


class ParseError(UitfKrakenError):
    """A single fetched document did not have the expected shape.

    Stage loops catch this per record, log the key and move on.
    """

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{key}: {message}")
        self.key = key
        self.message = message


__all__ = ["UitfKrakenError", "ConfigError", "ParseError"]
