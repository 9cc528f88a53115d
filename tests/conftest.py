"""
Pytest Configuration and Fixtures

Shared fixtures for the fertility inference pipeline tests.
"""
import pytest

from fertility_insight.config import Settings
from fertility_insight.core.cache import ResultCache
from fertility_insight.core.knowledge import default_knowledge_base
from fertility_insight.core.orchestrator import ClinicalOrchestrator
from fertility_insight.core.validation import PatientInputValidator


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def knowledge():
    """Bundled pathology and treatment tables."""
    return default_knowledge_base()


@pytest.fixture
def validator() -> PatientInputValidator:
    return PatientInputValidator()


@pytest.fixture
def make_profile(validator):
    """Build a validated PatientProfile from keyword fields."""
    def _make(**fields):
        profile, _ = validator.validate_and_sanitize(fields)
        return profile
    return _make


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        cache_max_entries=100,
        cache_max_bytes=5 * 1024 * 1024,
        cache_default_ttl_seconds=1800,
        analysis_timeout_seconds=10.0,
        max_workers=4,
    )


@pytest.fixture
def cache(clock) -> ResultCache:
    return ResultCache(max_entries=100, max_bytes=5 * 1024 * 1024, default_ttl_seconds=1800, clock=clock)


@pytest.fixture
def orchestrator(test_settings, knowledge, cache) -> ClinicalOrchestrator:
    return ClinicalOrchestrator(config=test_settings, knowledge=knowledge, cache=cache)


# ---- Patient records ----

@pytest.fixture
def scenario_a_input() -> dict:
    """Advanced age with very low reserve: donor egg indicated."""
    return {
        "age": 44,
        "infertility_duration_months": 12,
        "lab_values": {"amh": 0.25, "fsh": 22},
    }


@pytest.fixture
def scenario_b_input() -> dict:
    """Young, short duration, no work-up."""
    return {"age": 28, "infertility_duration_months": 6}


@pytest.fixture
def scenario_c_input() -> dict:
    """Age 41, long duration, low AMH: critical tier."""
    return {
        "age": 41,
        "infertility_duration_months": 30,
        "lab_values": {"amh": 0.4},
    }


@pytest.fixture
def pcos_input() -> dict:
    return {
        "age": 27,
        "infertility_duration_months": 14,
        "bmi": 28,
        "symptoms": ["irregular_periods", "hirsutism"],
        "lab_values": {"lh": 12, "fsh": 5, "amh": 5.2},
    }


@pytest.fixture
def complete_input() -> dict:
    """Every optional field populated."""
    return {
        "age": 33,
        "infertility_duration_months": 18,
        "bmi": 23.4,
        "lab_values": {"amh": 2.1, "fsh": 6.8, "lh": 5.5, "prolactin": 14, "tsh": 2.1},
        "symptoms": ["dysmenorrhea"],
        "medical_history": ["endometriosis"],
        "partner": {
            "age": 35,
            "semen_analysis": {"concentration": 40, "motility": 55, "morphology": 6, "volume": 2.5},
        },
        "endometriosis_stage": 2,
    }
