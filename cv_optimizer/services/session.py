"""Caller identity passed explicitly into every call that needs it."""

import random
import string
import time
from dataclasses import dataclass

_ID_ALPHABET = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class SessionContext:
    """Anonymous session id plus the signed-in user id, when there is one."""

    session_id: str
    user_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @classmethod
    def new(cls, user_id: str | None = None) -> "SessionContext":
        return cls(session_id=new_session_id(), user_id=user_id)


def new_session_id() -> str:
    """``session_<epoch-ms>_<9 base36 chars>``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"session_{int(time.time() * 1000)}_{suffix}"
