"""
Business-Site Classifier.

Distinguishes genuine company websites from directories, listicles and
aggregator platforms using a declarative rule table loaded from YAML.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Pattern
from urllib.parse import urlparse

import yaml

from harvester.config import settings
from harvester.models import CandidateSite, RankedCandidate

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).parent / "data" / "classifier_rules.yaml"

# Must look like a registrable domain name (rejects IPs and bare hosts)
DOMAIN_SHAPE = re.compile(r"^[a-z0-9.-]+\.[a-z]{2,}$")


@dataclass
class ClassifierRules:
    """Compiled rule table."""

    blocklist: list[str] = field(default_factory=list)
    path_patterns: list[str] = field(default_factory=list)
    title_patterns: dict[str, Pattern] = field(default_factory=dict)
    title_keywords: list[tuple[str, Pattern]] = field(default_factory=list)
    snippet_phrases: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "ClassifierRules":
        return cls(
            blocklist=[entry.lower() for entry in data.get("blocklist", [])],
            path_patterns=[p.lower() for p in data.get("path_patterns", [])],
            title_patterns={
                name: re.compile(pattern, re.IGNORECASE)
                for name, pattern in (data.get("title_patterns") or {}).items()
            },
            title_keywords=[
                (kw, re.compile(r"\b" + re.escape(kw.lower()) + r"\b", re.IGNORECASE))
                for kw in data.get("title_keywords", [])
            ],
            snippet_phrases=[p.lower() for p in data.get("snippet_phrases", [])],
        )

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> "ClassifierRules":
        """Load rules from a YAML file (the packaged table by default)."""
        yaml_path = Path(path) if path else DEFAULT_RULES_PATH
        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)


def _normalized_host(hostname: str) -> str:
    host = hostname.lower()
    if host.startswith("www."):
        host = host[4:]
    return host


class BusinessSiteClassifier:
    """Evaluates candidate sites against a ClassifierRules table."""

    def __init__(self, rules: Optional[ClassifierRules] = None):
        self.rules = rules or ClassifierRules.from_yaml()

    def rejection_reason(self, url: str, title: str, snippet: Optional[str] = None) -> Optional[str]:
        """
        Name of the first rule the candidate fails, or None if it passes.

        Args:
            url: Candidate URL
            title: Search result title
            snippet: Optional search result snippet

        Returns:
            Rule name (e.g. "blocklist", "top_n", "title_keyword") or None
        """
        try:
            parsed = urlparse(url)
        except ValueError:
            return "hostname"

        if parsed.scheme not in ("http", "https"):
            return "scheme"
        if not parsed.hostname:
            return "hostname"

        host = _normalized_host(parsed.hostname)
        host_and_path = f"{host}{parsed.path}".lower()
        for entry in self.rules.blocklist:
            target = host_and_path if "/" in entry else host
            if entry in target:
                return "blocklist"

        url_lower = url.lower()
        for pattern in self.rules.path_patterns:
            if pattern in url_lower:
                return "path"

        title = title or ""
        for name, regex in self.rules.title_patterns.items():
            if regex.search(title):
                return name

        for keyword, regex in self.rules.title_keywords:
            if regex.search(title):
                logger.debug(f"Rejected keyword '{keyword}': {title}")
                return "title_keyword"

        if snippet:
            snippet_lower = snippet.lower()
            for phrase in self.rules.snippet_phrases:
                if phrase in snippet_lower:
                    return "snippet"

        if not DOMAIN_SHAPE.match(host):
            return "domain_shape"

        return None

    def is_real_business_site(self, url: str, title: str, snippet: Optional[str] = None) -> bool:
        """True if the candidate passes every rule."""
        return self.rejection_reason(url, title, snippet) is None

    def filter_candidates(self, candidates: Iterable[CandidateSite]) -> list[RankedCandidate]:
        """
        Keep genuine business sites and renumber them from 1.

        The original position is kept as `original_rank` (the candidate's
        own rank when present, else its 1-based input position).
        """
        survivors = []
        for position, candidate in enumerate(candidates, start=1):
            original_rank = candidate.rank if candidate.rank is not None else position
            reason = self.rejection_reason(candidate.url, candidate.title, candidate.snippet)
            if reason:
                logger.info(f"Filtered out ({reason}): \"{candidate.title}\" - {candidate.url}")
                continue
            survivors.append(
                RankedCandidate(
                    candidate=candidate,
                    rank=len(survivors) + 1,
                    original_rank=original_rank,
                )
            )

        logger.info(f"Filtered candidates → {len(survivors)} real business websites")
        return survivors


_default_classifier: Optional[BusinessSiteClassifier] = None


def get_classifier() -> BusinessSiteClassifier:
    """Shared classifier over the packaged rule table."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = BusinessSiteClassifier(
            ClassifierRules.from_yaml(settings.CLASSIFIER_RULES_PATH)
        )
    return _default_classifier


def is_real_business_site(url: str, title: str, snippet: Optional[str] = None) -> bool:
    return get_classifier().is_real_business_site(url, title, snippet)


def filter_candidates(candidates: Iterable[CandidateSite]) -> list[RankedCandidate]:
    return get_classifier().filter_candidates(candidates)


def extract_company_name(title: str, url: str) -> str:
    """
    Best-effort company name from a search result.

    Uses the title up to the first " - " or " | " separator; falls back to
    the capitalized first label of the domain.
    """
    name = re.sub(r"\s*-\s.*$", "", title or "")
    name = re.sub(r"\s*\|.*$", "", name).strip()

    if len(name) < 3:
        try:
            host = _normalized_host(urlparse(url).hostname or "")
        except ValueError:
            host = ""
        label = host.split(".")[0] if host else ""
        name = label.capitalize() if label else "Unknown Company"

    return name
