"""StructuredResume: the record produced by the model and consumed by the codecs."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        """Treat JSON null as an absent field."""
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class Header(_Record):
    name: str = Field(..., min_length=1)
    contact: str = ""


class ExperienceEntry(_Record):
    title: str = ""
    company: str = ""
    period: str = ""
    highlights: list[str] = []


class EducationEntry(_Record):
    degree: str = ""
    institution: str = ""
    year: str = ""

    @field_validator("year", mode="before")
    @classmethod
    def _year_as_text(cls, value: Any) -> Any:
        # Models often emit graduation years as bare numbers
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class StructuredResume(_Record):
    """Optimized resume.

    Only ``header`` is required; every other section is omitted from previews
    and exports when absent or empty. ``match_score`` of None means unscored.
    """
    header: Header
    summary: str = ""
    skills: list[str] = []
    experience: list[ExperienceEntry] = []
    education: list[EducationEntry] = []
    match_score: int | None = Field(default=None, ge=0, le=100, alias="matchScore")

    def to_json_dict(self) -> dict:
        """Serialize with the wire field names (``matchScore``)."""
        return self.model_dump(by_alias=True, exclude_none=True)
