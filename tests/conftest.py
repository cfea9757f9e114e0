"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/engine/
"""

import os
from collections.abc import Callable
from typing import Any

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from iacctl.core.config import IacctlSettings

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


@pytest.fixture
def settings_factory() -> Callable[..., IacctlSettings]:
    """Build IacctlSettings with test defaults, overridable per field."""

    def _make(**overrides: Any) -> IacctlSettings:
        values: dict[str, Any] = {
            "api_base_url": "https://api.test",
            "api_key": "key-123",
            "account_id": "acct",
            "org_id": "org",
            "project_id": "proj",
        }
        values.update(overrides)
        return IacctlSettings(**values)

    return _make


@pytest.fixture(autouse=True)
def _reset_structlog() -> Any:
    """Undo configure_logging() between tests.

    configure_logging binds the current sys.stderr, which under pytest is a
    per-test capture stream that is closed once the test ends.
    """
    yield
    structlog.reset_defaults()
