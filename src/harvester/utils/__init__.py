"""Utility helpers for the harvester."""

from .challenge_handler import (
    CHALLENGE_INDICATORS,
    detect_challenge,
    is_challenge_page,
)

__all__ = [
    "CHALLENGE_INDICATORS",
    "detect_challenge",
    "is_challenge_page",
]
