from pydantic import BaseModel

from cv_optimizer.models.resume import StructuredResume


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None


class HealthResponse(BaseModel):
    status: str = "ok"
    gemini_configured: bool = False


class ExtractResponse(BaseModel):
    text: str
    characters: int = 0
    file_type: str = ""


class UsageResponse(BaseModel):
    usage_count: int = 0
    free_trial_limit: int = 0
    free_trials_remaining: int | None = None  # None for signed-in users


class OptimizationRecord(BaseModel):
    id: str
    user_id: str | None = None
    job_description: str = ""
    job_role: str | None = None
    optimized_content: StructuredResume
    match_score: int | None = None
    template_name: str = "modern"
    created_at: str
