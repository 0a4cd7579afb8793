"""Tests for award showcase resolution."""

import pytest

from harvester import showcase
from harvester.showcase import (
    ShowcasePlatform,
    is_showcase_page,
    load_platforms,
    platform_for,
    register_platform,
    resolve_actual_website,
)

AWWWARDS_PAGE = "https://www.awwwards.com/sites/acme-widgets"


@pytest.fixture
def fresh_platforms(monkeypatch):
    """Isolate tests that change the active platform table."""
    monkeypatch.setattr(showcase, "_platforms", None)


class TestPlatformTable:
    """Tests for the platform table."""

    def test_packaged_platforms(self):
        platforms = load_platforms()

        assert {"awwwards", "cssdesignawards", "thefwa", "siteinspire"} <= set(platforms)
        assert platforms["awwwards"].domain == "awwwards.com"
        assert platforms["awwwards"].selectors

    def test_is_showcase_page(self):
        assert is_showcase_page(AWWWARDS_PAGE)
        assert is_showcase_page("https://www.thefwa.com/cases/acme")
        assert not is_showcase_page("https://www.awwwards.com/")
        assert not is_showcase_page("https://acme.example/")

    def test_load_platforms_from_file(self, tmp_path):
        table = tmp_path / "platforms.yaml"
        table.write_text(
            "curated:\n"
            "  domain: Curated.example\n"
            "  page_pattern: curated.example/showcase/\n"
            "  selectors:\n"
            "    - a.site-link\n"
        )

        platforms = load_platforms(table)

        assert platforms["curated"].domain == "curated.example"
        assert platforms["curated"].selectors == ["a.site-link"]

    def test_register_platform(self, fresh_platforms):
        """Test new curator platforms are added without code changes."""
        register_platform(ShowcasePlatform(
            name="curated",
            domain="curated.example",
            page_pattern="curated.example/showcase/",
            selectors=["a.site-link"],
        ))
        html = '<a class="site-link" href="https://acme.example/">Visit</a>'

        assert platform_for("https://curated.example/showcase/acme").name == "curated"
        assert resolve_actual_website(html, "https://curated.example/showcase/acme") == "https://acme.example/"


class TestResolveActualWebsite:
    """Tests for resolve_actual_website()."""

    def test_platform_selector(self):
        html = """
            <a href="/sites/other">Other site</a>
            <a class="bt-visit" href="https://acme.example/">Visit Site</a>
        """
        assert resolve_actual_website(html, AWWWARDS_PAGE) == "https://acme.example/"

    def test_selector_links_back_to_platform_are_skipped(self):
        html = """
            <a class="bt-visit" href="/sites/acme-widgets/visit">Visit</a>
            <a class="bt-visit" href="https://acme.example/">Visit</a>
        """
        assert resolve_actual_website(html, AWWWARDS_PAGE) == "https://acme.example/"

    def test_fallback_to_external_new_tab_link(self):
        """Test social links are passed over in the fallback."""
        html = """
            <a href="https://twitter.com/acme" target="_blank">Twitter</a>
            <a href="https://www.awwwards.com/jury" target="_blank">Jury</a>
            <a href="https://acme.example" target="_blank">acme.example</a>
        """
        assert resolve_actual_website(html, AWWWARDS_PAGE) == "https://acme.example"

    def test_no_candidate(self):
        html = '<a href="https://www.instagram.com/acme" target="_blank">Instagram</a>'
        assert resolve_actual_website(html, AWWWARDS_PAGE) is None

    def test_non_showcase_page(self):
        html = '<a class="bt-visit" href="https://acme.example/">Visit</a>'
        assert resolve_actual_website(html, "https://acme.example/") is None
