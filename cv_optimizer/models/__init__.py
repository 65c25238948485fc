"""Pydantic contracts for the API and the StructuredResume record."""

from cv_optimizer.models.resume import (
    EducationEntry,
    ExperienceEntry,
    Header,
    StructuredResume,
)

__all__ = [
    "Header",
    "ExperienceEntry",
    "EducationEntry",
    "StructuredResume",
]
