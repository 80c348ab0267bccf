"""Playwright 브라우저/컨텍스트 관리.

로컬 launch와 CDP attach(Browserbase/원격 Chromium)를 한 곳에서 다루며,
백엔드 세션마다 하나의 BrowserSession을 소유합니다.
"""

from __future__ import annotations

import asyncio
import platform
from dataclasses import dataclass
from typing import Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Playwright

from staysearch.core.config import settings
from staysearch.core.exceptions import BrowserException
from staysearch.core.logging import logger


LAUNCH_ATTEMPTS = 2


def build_launch_args() -> list[str]:
    args: list[str] = [
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-background-networking",
        "--disable-background-timer-throttling",
        "--disable-renderer-backgrounding",
        "--disable-blink-features=AutomationControlled",
        "--disable-default-apps",
        "--disable-extensions",
        "--no-first-run",
        "--no-default-browser-check",
    ]

    if platform.system().lower() == "linux":
        args.extend(["--no-sandbox", "--disable-setuid-sandbox"])

    deduped: list[str] = []
    seen: set[str] = set()
    for a in args:
        if a not in seen:
            seen.add(a)
            deduped.append(a)
    return deduped


def context_options() -> dict:
    return {
        "user_agent": settings.browser_user_agent,
        "locale": settings.browser_locale,
        "viewport": {"width": 1366, "height": 900},
        "extra_http_headers": {
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        },
    }


@dataclass
class BrowserSession:
    """Playwright 드라이버 + 브라우저 + 컨텍스트 묶음"""

    playwright: Optional[Playwright]
    browser: Optional[Browser]
    context: Optional[BrowserContext]
    owns_context: bool = True

    def is_connected(self) -> bool:
        try:
            return self.browser is not None and self.browser.is_connected()
        except Exception:
            return False

    async def new_page(self):
        if self.context is not None:
            return await self.context.new_page()
        if self.browser is None:
            raise BrowserException("Browser session is closed")
        return await self.browser.new_page()

    async def close(self) -> None:
        """역순으로 정리. 개별 실패는 로깅 후 계속 진행"""
        if self.context is not None and self.owns_context:
            try:
                await self.context.close()
            except Exception as e:
                logger.debug(f"[Playwright] Context close failed: {type(e).__name__}")
        self.context = None
        if self.browser is not None:
            try:
                await self.browser.close()
            except Exception as e:
                logger.debug(f"[Playwright] Browser close failed: {type(e).__name__}")
            self.browser = None
        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except Exception as e:
                logger.debug(f"[Playwright] Driver stop failed: {type(e).__name__}")
            self.playwright = None


async def launch_local_browser(headless: Optional[bool] = None, browser_type: Optional[str] = None) -> BrowserSession:
    """로컬 브라우저 실행 (재시도 포함)

    Raises:
        BrowserException: 재시도 후에도 실행 실패
    """
    headless = settings.browser_headless if headless is None else headless
    browser_type = (browser_type or settings.browser_type).lower()

    last_err: Optional[Exception] = None
    for attempt in range(1, LAUNCH_ATTEMPTS + 1):
        session = BrowserSession(None, None, None)
        try:
            logger.info(f"[Playwright] Launching {browser_type} (attempt {attempt}/{LAUNCH_ATTEMPTS})...")
            session.playwright = await asyncio.wait_for(async_playwright().start(), timeout=20.0)

            launcher = getattr(session.playwright, browser_type, None)
            if launcher is None:
                raise BrowserException(f"Unsupported browser type: {browser_type}")

            launch_kwargs = {"headless": headless, "timeout": settings.backend_timeout_ms}
            if browser_type == "chromium":
                launch_kwargs["args"] = build_launch_args()
            session.browser = await asyncio.wait_for(launcher.launch(**launch_kwargs), timeout=25.0)
            session.context = await session.browser.new_context(**context_options())

            logger.info("[Playwright] Browser launched successfully")
            return session
        except BrowserException:
            await session.close()
            raise
        except Exception as e:
            last_err = e
            logger.error(f"[Playwright] Launch failed (attempt {attempt}/{LAUNCH_ATTEMPTS}): {type(e).__name__}: {e}")
            await session.close()
            if attempt < LAUNCH_ATTEMPTS:
                wait_time = min(2.0 * attempt, 10.0)
                logger.info(f"[Playwright] Waiting {wait_time:.1f}s before retry...")
                await asyncio.sleep(wait_time)

    raise BrowserException(f"[Playwright] Browser launch failed after retries: {last_err}")


async def attach_over_cdp(endpoint: str) -> BrowserSession:
    """이미 실행 중인 Chromium에 CDP로 연결

    원격 브라우저가 기본 컨텍스트를 갖고 있으면 재사용합니다.
    """
    session = BrowserSession(None, None, None)
    try:
        session.playwright = await asyncio.wait_for(async_playwright().start(), timeout=20.0)
        session.browser = await asyncio.wait_for(
            session.playwright.chromium.connect_over_cdp(endpoint, timeout=settings.backend_timeout_ms),
            timeout=settings.backend_timeout_ms / 1000,
        )
        contexts = session.browser.contexts
        if contexts:
            session.context = contexts[0]
            session.owns_context = False
        else:
            session.context = await session.browser.new_context(**context_options())
        return session
    except Exception as e:
        await session.close()
        raise BrowserException(f"[Playwright] CDP attach failed: {type(e).__name__}: {e}") from e
