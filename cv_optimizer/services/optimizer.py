"""Optimization flow: trial check, model call, normalization, bookkeeping.

Flow:
    resume_text + job_description + job_role
      ├─ trial limit check (anonymous sessions only)
      ├─ ModelInvoker.optimize()      → raw text (retried, with model fallback)
      ├─ response_normalizer.normalize() → StructuredResume
      ├─ store.save_optimization()     (signed-in users; failures swallowed)
      └─ store.increment_usage()       (failures swallowed)

Store calls are blocking sqlite3 work and run in a worker thread.
"""

import asyncio
import logging
from typing import Callable

from cv_optimizer.config import settings
from cv_optimizer.models.resume import StructuredResume
from cv_optimizer.services import response_normalizer
from cv_optimizer.services.errors import MissingFieldError, TrialLimitError
from cv_optimizer.services.gemini_client import ModelInvoker
from cv_optimizer.services.prompt_builder import DEFAULT_JOB_ROLE
from cv_optimizer.services.session import SessionContext
from cv_optimizer.services.storage import OptimizationStore

logger = logging.getLogger(__name__)


def check_trial_limit(store: OptimizationStore | None, session: SessionContext) -> None:
    """Raise TrialLimitError once an anonymous session used up its free runs."""
    if session.is_authenticated or store is None:
        return
    try:
        used = store.get_usage_count(session.session_id)
    except Exception:
        logger.exception("Usage lookup failed; allowing request")
        return
    if used >= settings.free_trial_limit:
        raise TrialLimitError(settings.free_trial_limit)


def _record_success(
    store: OptimizationStore,
    session: SessionContext,
    job_description: str,
    job_role: str,
    resume: StructuredResume,
) -> str | None:
    """Persist the result and bump the usage counter. Never raises."""
    optimization_id = None
    if session.user_id and settings.persistence_enabled:
        try:
            record = store.save_optimization(
                user_id=session.user_id,
                job_description=job_description,
                job_role=job_role,
                resume=resume,
                template_name=settings.template_name,
            )
            optimization_id = record["id"]
        except Exception:
            # The optimization itself succeeded
            logger.exception("Failed to save optimization to database")

    try:
        store.increment_usage(session.session_id, session.user_id)
    except Exception:
        logger.exception("Usage tracking error")
    return optimization_id


async def optimize(
    invoker: ModelInvoker,
    session: SessionContext,
    resume_text: str,
    job_description: str,
    job_role: str = "",
    store: OptimizationStore | None = None,
    on_retry: Callable[[int, Exception], None] | None = None,
) -> StructuredResume:
    """Run one optimization request end to end."""
    if not resume_text.strip() or not job_description.strip():
        raise MissingFieldError("Resume text and job description are required")
    job_role = job_role.strip() or DEFAULT_JOB_ROLE

    await asyncio.to_thread(check_trial_limit, store, session)

    raw = await invoker.optimize(resume_text, job_description, job_role, on_retry=on_retry)
    resume = response_normalizer.normalize(raw)

    if store is not None:
        await asyncio.to_thread(
            _record_success, store, session, job_description, job_role, resume
        )
    return resume
