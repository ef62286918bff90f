"""Shared utilities."""

from kodus_flow.utils.ids import IdGenerator, validate_thread_id

__all__ = ["IdGenerator", "validate_thread_id"]
