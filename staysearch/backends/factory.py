"""Backend registry - 이름으로 백엔드 생성 + 설정 검증"""

from __future__ import annotations

from typing import Callable

from staysearch.backends.base import BackendName, SearchBackend
from staysearch.core.config import Settings, settings as default_settings
from staysearch.core.exceptions import UnsupportedModeException


def missing_backend_config(name: str, config: Settings | None = None) -> list[str]:
    """백엔드에 필요한 설정 중 누락된 항목 이름 목록

    Args:
        name: 백엔드 이름
        config: 검사할 설정 (기본: 전역 settings)

    Returns:
        list[str]: 누락된 설정 키. 비어 있으면 사용 가능

    Raises:
        UnsupportedModeException: 알 수 없는 백엔드 이름
    """
    config = config or default_settings

    if name == BackendName.PLAYWRIGHT.value:
        return []
    if name == BackendName.BROWSERBASE.value:
        missing = []
        if not config.browserbase_api_key:
            missing.append("BROWSERBASE_API_KEY")
        if not config.browserbase_project_id:
            missing.append("BROWSERBASE_PROJECT_ID")
        return missing
    if name == BackendName.REMOTE.value:
        return [] if config.remote_cdp_url else ["REMOTE_CDP_URL"]
    raise UnsupportedModeException(name)


def is_backend_configured(name: str, config: Settings | None = None) -> bool:
    return not missing_backend_config(name, config)


def create_backend(name: str) -> SearchBackend:
    """이름으로 백엔드 인스턴스 생성 (요청마다 새 인스턴스)"""
    # 브라우저 의존성은 실제 생성 시점에만 로드
    if name == BackendName.PLAYWRIGHT.value:
        from staysearch.backends.playwright_backend import PlaywrightBackend
        return PlaywrightBackend()
    if name == BackendName.BROWSERBASE.value:
        from staysearch.backends.browserbase_backend import BrowserbaseBackend
        return BrowserbaseBackend()
    if name == BackendName.REMOTE.value:
        from staysearch.backends.remote_backend import RemoteBrowserBackend
        return RemoteBrowserBackend()
    raise UnsupportedModeException(name)


BackendFactory = Callable[[str], SearchBackend]
