import asyncio
import json
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from slowapi import Limiter
from slowapi.util import get_remote_address

from cv_optimizer.api.dependencies import get_model_invoker, get_session_context, get_store
from cv_optimizer.config import settings
from cv_optimizer.models.requests import ExportRequest, OptimizeRequest
from cv_optimizer.models.responses import (
    ErrorResponse,
    ExtractResponse,
    HealthResponse,
    OptimizationRecord,
    UsageResponse,
)
from cv_optimizer.models.resume import StructuredResume
from cv_optimizer.services import export, file_extractor, optimizer
from cv_optimizer.services.error_classifier import to_user_message
from cv_optimizer.services.errors import (
    CVOptimizerError,
    ExportError,
    InputError,
    TrialLimitError,
)
from cv_optimizer.services.gemini_client import ModelInvoker
from cv_optimizer.services.session import SessionContext
from cv_optimizer.services.storage import OptimizationStore

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _error(status_code: int, message: str, details: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _require_user(session: SessionContext) -> str:
    if not session.user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return session.user_id


def _file_response(data: bytes, fmt: export.ExportFormat, filename: str) -> Response:
    return Response(
        content=data,
        media_type=export.MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", gemini_configured=bool(settings.gemini_api_key))


@router.post(
    "/optimize",
    response_model=StructuredResume,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
)
@limiter.limit(settings.optimize_rate_limit)
async def optimize_cv(
    request: Request,
    response: Response,
    session: SessionContext = Depends(get_session_context),
    store: OptimizationStore = Depends(get_store),
    invoker: ModelInvoker | None = Depends(get_model_invoker),
):
    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type:
        return _error(400, "Content-Type must be application/json")

    raw_body = await request.body()
    if not raw_body.strip():
        return _error(400, "Request body is empty. Please provide resumeText and jobDescription.")
    try:
        payload = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return _error(
            400,
            "Invalid JSON in request body. Please ensure the body contains valid JSON "
            "with resumeText and jobDescription fields.",
            details=str(e),
        )

    try:
        body = OptimizeRequest.model_validate(payload)
    except ValidationError:
        return _error(400, "Resume text and job description are required")

    if invoker is None:
        return _error(500, "Gemini API key not configured. Please set GEMINI_API_KEY.")

    try:
        resume = await optimizer.optimize(
            invoker,
            session,
            body.resume_text,
            body.job_description,
            body.job_role,
            store=store,
        )
    except TrialLimitError as e:
        return _error(403, str(e))
    except InputError as e:
        return _error(400, str(e))
    except CVOptimizerError as e:
        logger.error("Error in optimize-cv: %s", e)
        return _error(500, to_user_message(e), details=str(e) if settings.debug else None)

    response.headers["X-Session-Id"] = session.session_id
    return resume


@router.post("/extract", response_model=ExtractResponse)
async def extract_resume(file: UploadFile = File(...)):
    max_bytes = settings.max_upload_size_mb * 1024 * 1024
    try:
        # Declared size is checked before the body is read
        if file.size is not None:
            file_extractor.check_size(file.size, max_bytes)
        content = await file.read()
        kind, text = await asyncio.to_thread(
            file_extractor.extract,
            content,
            filename=file.filename,
            content_type=file.content_type,
            max_bytes=max_bytes,
        )
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return ExtractResponse(text=text, characters=len(text), file_type=kind.value)


@router.get("/usage", response_model=UsageResponse)
def usage(
    response: Response,
    session: SessionContext = Depends(get_session_context),
    store: OptimizationStore = Depends(get_store),
):
    count = store.get_usage_count(session.session_id, session.user_id)
    remaining = None
    if not session.is_authenticated:
        remaining = max(0, settings.free_trial_limit - count)
    response.headers["X-Session-Id"] = session.session_id
    return UsageResponse(
        usage_count=count,
        free_trial_limit=settings.free_trial_limit,
        free_trials_remaining=remaining,
    )


@router.get(
    "/optimizations",
    response_model=list[OptimizationRecord],
    response_model_exclude_none=True,
)
def list_optimizations(
    session: SessionContext = Depends(get_session_context),
    store: OptimizationStore = Depends(get_store),
):
    user_id = _require_user(session)
    return store.list_optimizations(user_id)


def _owned_record(store: OptimizationStore, optimization_id: str, user_id: str) -> dict:
    record = store.get_optimization(optimization_id)
    if record is None or record["user_id"] != user_id:
        raise HTTPException(status_code=404, detail="Optimization not found")
    return record


@router.get(
    "/optimizations/{optimization_id}",
    response_model=OptimizationRecord,
    response_model_exclude_none=True,
)
def get_optimization(
    optimization_id: str,
    session: SessionContext = Depends(get_session_context),
    store: OptimizationStore = Depends(get_store),
):
    return _owned_record(store, optimization_id, _require_user(session))


@router.delete("/optimizations/{optimization_id}", status_code=204)
def delete_optimization(
    optimization_id: str,
    session: SessionContext = Depends(get_session_context),
    store: OptimizationStore = Depends(get_store),
):
    user_id = _require_user(session)
    if not store.delete_optimization(optimization_id, user_id):
        raise HTTPException(status_code=404, detail="Optimization not found")
    return Response(status_code=204)


@router.get("/optimizations/{optimization_id}/export/{fmt}")
def export_optimization(
    optimization_id: str,
    fmt: export.ExportFormat,
    session: SessionContext = Depends(get_session_context),
    store: OptimizationStore = Depends(get_store),
):
    record = _owned_record(store, optimization_id, _require_user(session))
    try:
        resume = StructuredResume.model_validate(record["optimized_content"])
        data = export.render(resume, fmt)
    except ValidationError:
        raise HTTPException(status_code=400, detail="CV data not available for download")
    except ExportError as e:
        raise HTTPException(status_code=500, detail=str(e))

    created_at = datetime.fromisoformat(record["created_at"])
    return _file_response(data, fmt, export.export_filename(record["job_role"], fmt, created_at))


@router.post("/export/{fmt}")
def export_resume(fmt: export.ExportFormat, body: ExportRequest):
    try:
        data = export.render(body.resume, fmt)
    except ExportError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _file_response(data, fmt, export.export_filename(body.job_role, fmt))
