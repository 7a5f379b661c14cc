# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/

Engine fixtures use MockClock so trace timings are exact, and a fresh
TaxGraphEngine per test so registrations never leak between tests.
"""

import os
from collections.abc import Iterator

import pytest
from hypothesis import Phase, Verbosity, settings
from structlog.testing import capture_logs

from taxgraph.contracts import SessionParameters
from taxgraph.core.config import EngineSettings
from taxgraph.engine import MockClock, TaxGraphEngine

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Engine fixtures
# =============================================================================


@pytest.fixture
def clock() -> MockClock:
    return MockClock(start=0.0, tick=0.001)


@pytest.fixture
def engine(clock: MockClock) -> TaxGraphEngine:
    return TaxGraphEngine(settings=EngineSettings(), clock=clock)


@pytest.fixture
def params() -> SessionParameters:
    return SessionParameters(tax_year="2025", filing_status="single", session_key="test-session")


@pytest.fixture
def joint_params() -> SessionParameters:
    return SessionParameters(
        tax_year="2025",
        filing_status="married_filing_jointly",
        has_second_filer=True,
        session_key="test-joint-session",
    )


@pytest.fixture
def captured_logs() -> Iterator[list[dict[str, object]]]:
    """Capture structlog events emitted during a test."""
    with capture_logs() as logs:
        yield logs
