"""Shared test configuration, fixtures and pytest markers."""

import pytest

from cv_optimizer.models.resume import StructuredResume
from cv_optimizer.services.errors import ProviderError
from cv_optimizer.services.gemini_client import ModelInvoker, TextGenerator
from cv_optimizer.services.storage import OptimizationStore


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: talks to the real Gemini API (needs GEMINI_API_KEY)"
    )


SAMPLE_RESUME = {
    "header": {
        "name": "John Doe",
        "contact": "john.doe@email.com | +1-555-0123 | Berlin",
    },
    "summary": "Backend developer with 5 years of experience building APIs in Go and Python.",
    "skills": ["Go", "Python", "PostgreSQL", "Docker", "Kubernetes"],
    "experience": [
        {
            "title": "Backend Developer",
            "company": "Acme Corp",
            "period": "Jan 2020 - Present",
            "highlights": [
                "Built Go microservices serving 1M requests/day",
                "Cut p99 latency by 40% by introducing connection pooling",
            ],
        },
        {
            "title": "Software Engineer",
            "company": "Initech",
            "period": "Jun 2017 - Dec 2019",
            "highlights": [],
        },
    ],
    "education": [
        {
            "degree": "BSc Computer Science",
            "institution": "TU Berlin",
            "year": "2017",
        }
    ],
    "matchScore": 82,
}


class FakeGenerator(TextGenerator):
    """Scripted generator: pops one outcome per call.

    Outcomes are either a string (returned) or an exception (raised).
    """

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls: list[tuple[str, str]] = []

    async def generate(self, model: str, prompt: str) -> str:
        self.calls.append((model, prompt))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sample_resume_dict() -> dict:
    import copy
    return copy.deepcopy(SAMPLE_RESUME)


@pytest.fixture
def sample_resume(sample_resume_dict) -> StructuredResume:
    return StructuredResume.model_validate(sample_resume_dict)


@pytest.fixture
def store(tmp_path) -> OptimizationStore:
    s = OptimizationStore(tmp_path / "test.db")
    s.init_db()
    return s


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_invoker(sleep_recorder):
    def _make(outcomes, models=("primary-model", "fallback-model"), max_attempts=3):
        generator = FakeGenerator(outcomes)
        invoker = ModelInvoker(
            generator,
            models,
            max_attempts=max_attempts,
            base_delay=1.0,
            sleep=sleep_recorder,
        )
        return invoker, generator
    return _make


def server_error(message: str = "Gemini API error: 500 - Internal error") -> ProviderError:
    return ProviderError(message, status_code=500)
