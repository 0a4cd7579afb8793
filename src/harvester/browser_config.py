"""
Browser configuration for the Playwright-based page renderer.

This module provides a validated Pydantic configuration model for all
browser-related settings and pre-configured instances for common use cases.
"""
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

from harvester.constants import (
    DEFAULT_FETCH_TIMEOUT_MS,
    RENDER_SETTLE_MS,
    SLOW_FETCH_TIMEOUT_MS,
)


class BrowserConfig(BaseModel):
    """
    Configuration for PageRenderer.

    All fields are validated by Pydantic to ensure type safety and valid values.
    """

    model_config = ConfigDict(validate_assignment=True)

    headless: bool = Field(
        default=True,
        description="Run browser in headless mode (no visible UI)"
    )

    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine to use for rendering"
    )

    timeout: int = Field(
        default=DEFAULT_FETCH_TIMEOUT_MS,
        description="Navigation timeout in milliseconds",
        ge=1000,
        le=300000
    )

    slow_timeout: int = Field(
        default=SLOW_FETCH_TIMEOUT_MS,
        description="Navigation timeout for known slow showcase domains",
        ge=1000,
        le=300000
    )

    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = Field(
        default="networkidle",
        description="When to consider navigation complete"
    )

    settle_ms: int = Field(
        default=RENDER_SETTLE_MS,
        description="Fixed wait after navigation for deferred rendering",
        ge=0,
        le=60000
    )

    wait_for_lazy_images: bool = Field(
        default=True,
        description="Scroll the page before serializing so lazy-loaded images resolve"
    )

    stealth_mode: bool = Field(
        default=True,
        description="Apply anti-detection measures to avoid bot blocking"
    )

    mobile: bool = Field(
        default=False,
        description="Use mobile viewport"
    )

    launch_args: List[str] = Field(
        default_factory=list,
        description="Additional browser launch arguments (e.g., '--disable-http2')"
    )


# --- Pre-configured Instances for Common Use Cases ---

STEALTH_CONFIG = BrowserConfig(
    headless=True,
    stealth_mode=True,
    wait_until="networkidle",
    launch_args=[
        "--disable-http2",  # Bypass HTTP/2 fingerprinting
        "--disable-blink-features=AutomationControlled",
        "--no-first-run",
        "--no-default-browser-check",
    ],
)
"""
Stealth configuration for sites with aggressive anti-bot protection.
"""
