"""Identifier generation and thread-id validation.

Generated identifiers only use characters accepted by thread-id validation
([A-Za-z0-9_-]), so they can be used as thread ids without sanitizing.
"""

import re
import secrets
import time

from kodus_flow.errors import InvalidThreadIdError

_INVALID_THREAD_CHARS = re.compile(r"[^a-zA-Z0-9\-_]")


def _base36(value: int) -> str:
    chars = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(chars[rem])
    return "".join(reversed(digits))


class IdGenerator:
    """Factory for prefixed, process-unique identifiers."""

    @staticmethod
    def _make(prefix: str) -> str:
        timestamp = _base36(time.time_ns() // 1_000_000)
        return f"{prefix}_{timestamp}_{secrets.token_hex(4)}"

    @classmethod
    def execution_id(cls) -> str:
        return cls._make("exec")

    @classmethod
    def correlation_id(cls) -> str:
        return cls._make("corr")

    @classmethod
    def session_id(cls) -> str:
        return cls._make("session")

    @classmethod
    def call_id(cls) -> str:
        return cls._make("call")

    @classmethod
    def invocation_id(cls) -> str:
        return cls._make("inv")

    @classmethod
    def memory_id(cls) -> str:
        return cls._make("mem")


def validate_thread_id(thread_id: str) -> str:
    """Return the thread id unchanged, or raise if sanitizing would alter it.

    Raises:
        InvalidThreadIdError: If the id is empty or has characters outside [A-Za-z0-9_-]
    """
    if not thread_id or not isinstance(thread_id, str):
        raise InvalidThreadIdError("Thread id must be a non-empty string")
    if _INVALID_THREAD_CHARS.sub("", thread_id) != thread_id:
        raise InvalidThreadIdError(
            f"Invalid thread id: {thread_id!r}",
            context={"thread_id": thread_id},
        )
    return thread_id
