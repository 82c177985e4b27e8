"""Ambient authenticated user for a tool call.

The auth layer resolves the caller to an integer user id and runs the call
inside `user_context(user_id)`; everything below reads it with `get_user_id()`.
"""
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

current_user_id: ContextVar[int | None] = ContextVar("current_user_id", default=None)


def get_user_id() -> int:
    user_id = current_user_id.get()
    if user_id is None:
        raise RuntimeError("get_user_id() called outside of an authenticated context")
    return user_id


@contextmanager
def user_context(user_id: int) -> Iterator[int]:
    token = current_user_id.set(user_id)
    try:
        yield user_id
    finally:
        current_user_id.reset(token)
