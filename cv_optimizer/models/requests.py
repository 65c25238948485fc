from pydantic import BaseModel, ConfigDict, Field

from cv_optimizer.models.resume import StructuredResume


class OptimizeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resume_text: str = Field("", alias="resumeText", description="Plain text resume content")
    job_description: str = Field("", alias="jobDescription", description="Job description text")
    job_role: str = Field("", alias="jobRole", description="Target job title")


class ExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resume: StructuredResume
    job_role: str = Field("", alias="jobRole")
