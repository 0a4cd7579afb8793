"""Tests for the business-site classifier."""

import pytest

from harvester.classifier import (
    BusinessSiteClassifier,
    ClassifierRules,
    extract_company_name,
    filter_candidates,
    is_real_business_site,
)
from harvester.models import CandidateSite


@pytest.fixture
def classifier():
    return BusinessSiteClassifier()


class TestAcceptedSites:
    """Genuine company websites pass every rule."""

    @pytest.mark.parametrize("url,title,snippet", [
        (
            "https://www.acmeplumbing.com/",
            "Acme Plumbing - Residential & Commercial Plumbing",
            "Family-owned plumbers serving Austin since 1985.",
        ),
        ("https://brightpath.io/about", "About Us | BrightPath Consulting", None),
        ("https://integratedsystems.com/", "Integrated Systems Inc", None),
        ("https://northwind.co.uk/", "Northwind Traders", "Wholesale food importers."),
        ("https://www.smithassociatescpa.com/", "Smith & Associates Accounting", None),
    ])
    def test_accepts_business_site(self, classifier, url, title, snippet):
        assert classifier.rejection_reason(url, title, snippet) is None
        assert classifier.is_real_business_site(url, title, snippet)


class TestRejectionRules:
    """Each rule in the table rejects its own class of candidate."""

    @pytest.mark.parametrize("url,title,snippet,reason", [
        ("https://www.yelp.com/biz/acme-plumbing-austin", "Acme Plumbing - Yelp", None, "blocklist"),
        ("https://m.facebook.com/acmeplumbing", "Acme Plumbing", None, "blocklist"),
        ("https://www.linkedin.com/company/acme", "Acme | LinkedIn", None, "blocklist"),
        ("https://www.google.com/maps/place/Acme+Plumbing", "Acme Plumbing", None, "blocklist"),
        ("https://austinchamber.org/directory/plumbers", "Plumbers | Austin Chamber", None, "path"),
        ("https://plumbingnews.net/top-plumbers", "Top 10 Plumbers in Austin", None, "top_n"),
        ("https://austinbusinessreview.net/", "Top 10 Accounting Firms in Austin", None, "top_n"),
        ("https://agencyspotter.net/", "15 Marketing Agencies to Watch", None, "number_noun"),
        ("https://homeguide.net/", "The Best Plumbers in Austin", None, "best"),
        ("https://homeguide.net/", "Austin Plumbers Ranked by Customers", None, "ranking"),
        ("https://homeguide.net/", "Most Trusted Plumbing Companies", None, "aggregator"),
        ("https://homeguide.net/", "Plumbers Near Me", None, "title_keyword"),
        ("https://homeguide.net/", "Acme vs Bolt Plumbing", None, "title_keyword"),
        ("https://austinplumbers.org/", "Austin Plumbers Association", "View all members of the association.", "snippet"),
        ("http://192.168.1.10/", "Router Admin", None, "domain_shape"),
        ("http://localhost:8080/", "Dev Server", None, "domain_shape"),
        ("ftp://files.acme.com/", "Acme Files", None, "scheme"),
        ("https:///nohost", "Nothing", None, "hostname"),
    ])
    def test_rejects(self, classifier, url, title, snippet, reason):
        assert classifier.rejection_reason(url, title, snippet) == reason
        assert not classifier.is_real_business_site(url, title, snippet)

    def test_blocklist_path_entry_only_matches_path(self, classifier):
        """Test a host+path entry leaves the rest of the host alone."""
        assert classifier.rejection_reason("https://www.google.com/maps/@30.2,-97.7", "Map") == "blocklist"
        assert classifier.rejection_reason("https://google.com/about", "About Google") is None

    def test_title_patterns_are_word_bounded(self, classifier):
        """Test 'rated' inside another word does not trigger the ranking rule."""
        assert classifier.rejection_reason("https://decorated.com/", "Decorated Cakes Bakery") is None
        assert classifier.rejection_reason("https://decorated.com/", "Highly Rated Bakery") == "ranking"


class TestCustomRules:
    """Rule tables are data and can be replaced."""

    def test_rules_from_dict(self):
        rules = ClassifierRules.from_dict({
            "blocklist": ["Example-Directory.com"],
            "title_patterns": {"listicle": r"\bthings to do\b"},
        })
        classifier = BusinessSiteClassifier(rules)

        assert classifier.rejection_reason("https://example-directory.com/", "Home") == "blocklist"
        assert classifier.rejection_reason("https://acme.com/", "20 Things To Do") == "listicle"
        assert classifier.rejection_reason("https://yelp.com/", "Yelp") is None

    def test_rules_from_yaml(self, tmp_path):
        rules_file = tmp_path / "rules.yaml"
        rules_file.write_text("blocklist:\n  - acme.com\nsnippet_phrases:\n  - members only\n")

        classifier = BusinessSiteClassifier(ClassifierRules.from_yaml(rules_file))

        assert classifier.rejection_reason("https://www.acme.com/", "Acme") == "blocklist"
        assert classifier.rejection_reason("https://bolt.com/", "Bolt", "Members only area") == "snippet"

    def test_packaged_rules_load(self):
        rules = ClassifierRules.from_yaml()

        assert "yelp.com" in rules.blocklist
        assert "top_n" in rules.title_patterns
        assert rules.title_keywords


class TestFilterCandidates:
    """Tests for filtering and re-ranking."""

    def test_survivors_are_renumbered(self, classifier):
        """Test survivors at positions 1, 3, 5 become ranks 1, 2, 3."""
        candidates = [
            CandidateSite("https://acmeplumbing.com/", "Acme Plumbing", rank=1),
            CandidateSite("https://www.yelp.com/biz/acme", "Acme - Yelp", rank=2),
            CandidateSite("https://boltelectric.com/", "Bolt Electric", rank=3),
            CandidateSite("https://homeguide.net/", "Top 10 Electricians", rank=4),
            CandidateSite("https://cedarroofing.com/", "Cedar Roofing", rank=5),
        ]

        survivors = classifier.filter_candidates(candidates)

        assert [s.url for s in survivors] == [
            "https://acmeplumbing.com/",
            "https://boltelectric.com/",
            "https://cedarroofing.com/",
        ]
        assert [s.rank for s in survivors] == [1, 2, 3]
        assert [s.original_rank for s in survivors] == [1, 3, 5]

    def test_original_rank_defaults_to_position(self, classifier):
        candidates = [
            CandidateSite("https://www.yelp.com/biz/acme", "Acme - Yelp"),
            CandidateSite("https://acmeplumbing.com/", "Acme Plumbing"),
        ]

        survivors = classifier.filter_candidates(candidates)

        assert len(survivors) == 1
        assert survivors[0].rank == 1
        assert survivors[0].original_rank == 2

    def test_empty_input(self, classifier):
        assert classifier.filter_candidates([]) == []

    def test_ranked_candidate_to_dict(self, classifier):
        survivors = classifier.filter_candidates([CandidateSite("https://acme.com/", "Acme", "Widgets", 4)])

        assert survivors[0].to_dict() == {
            "url": "https://acme.com/",
            "title": "Acme",
            "snippet": "Widgets",
            "rank": 1,
            "original_rank": 4,
        }

    def test_module_level_helpers(self):
        assert is_real_business_site("https://acmeplumbing.com/", "Acme Plumbing")
        assert not is_real_business_site("https://www.yelp.com/", "Yelp")
        assert len(filter_candidates([CandidateSite("https://acme.com/", "Acme")])) == 1


class TestExtractCompanyName:
    """Tests for extract_company_name()."""

    def test_title_before_dash(self):
        assert extract_company_name("Acme Plumbing - Austin, TX", "https://acme.com/") == "Acme Plumbing"

    def test_title_before_pipe(self):
        assert extract_company_name("BrightPath | Strategy Consulting", "https://brightpath.io/") == "BrightPath"

    def test_falls_back_to_domain(self):
        assert extract_company_name("", "https://www.brightpath.io/") == "Brightpath"

    def test_unknown(self):
        assert extract_company_name("AB", "") == "Unknown Company"
