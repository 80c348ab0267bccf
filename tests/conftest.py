"""전역 테스트 설정

역할:
- 테스트 환경 구성
- 공통 요청 픽스처

금지:
- 실제 네트워크/브라우저 호출
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest


# 프로젝트 루트를 경로에 추가
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

os.environ.setdefault("ENVIRONMENT", "test")

from tests.fixtures import make_request  # noqa: E402
from staysearch.schemas.search_schema import SearchRequest  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def test_env() -> None:
    """테스트 환경 변수 설정 (세션 전역)"""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["LOG_LEVEL"] = "INFO"


@pytest.fixture
def search_request() -> SearchRequest:
    return make_request()


@pytest.fixture
def budget_request() -> SearchRequest:
    return make_request(budget_min=100, budget_max=200)
