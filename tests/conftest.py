from __future__ import annotations

from typing import Callable

import pytest

from localsearch.services.pipeline import LocalSearchPipeline
from stubs import build_test_pipeline


@pytest.fixture
def make_pipeline() -> Callable[..., LocalSearchPipeline]:
    return build_test_pipeline
