"""Playwright helpers shared by the browser backends."""

from .browser import BrowserSession, attach_over_cdp, build_launch_args, launch_local_browser
from .pages import configure_page, load_html

__all__ = [
    "BrowserSession",
    "attach_over_cdp",
    "build_launch_args",
    "launch_local_browser",
    "configure_page",
    "load_html",
]
