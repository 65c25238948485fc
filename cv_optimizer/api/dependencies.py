"""Shared dependencies for API routes."""

from fastapi import Header

from cv_optimizer.services import storage
from cv_optimizer.services.errors import ProviderNotConfiguredError
from cv_optimizer.services.gemini_client import ModelInvoker, get_invoker
from cv_optimizer.services.session import SessionContext, new_session_id


def get_session_context(
    x_session_id: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
) -> SessionContext:
    """Build the caller's session from request headers.

    User identity comes from the upstream identity provider; requests without
    a session id get a fresh one, returned in the ``X-Session-Id`` header.
    """
    return SessionContext(
        session_id=(x_session_id or "").strip() or new_session_id(),
        user_id=(x_user_id or "").strip() or None,
    )


def get_store() -> storage.OptimizationStore:
    return storage.get_store()


def get_model_invoker() -> ModelInvoker | None:
    try:
        return get_invoker()
    except ProviderNotConfiguredError:
        return None
