"""Unit tests for challenge page detection."""

from harvester.utils.challenge_handler import (
    CAPTCHA_PAGE_MAX_LENGTH,
    detect_challenge,
    is_challenge_page,
)


class TestDetectChallenge:
    """Tests for detect_challenge()."""

    def test_cloudflare_interstitial(self):
        html = "<html><head><title>Just a moment...</title></head><body>Checking your browser</body></html>"
        assert detect_challenge(html) == "cloudflare_challenge"

    def test_cloudflare_interstitial_script_markers(self):
        """Test the interstitial bootstrap is detected without its title."""
        opt = "<html><body><script>window._cf_chl_opt = {cType: 'managed'};</script></body></html>"
        orchestrate = '<html><body><script src="/cdn-cgi/challenge-platform/h/b/orchestrate/chl_page/v1"></script></body></html>'

        assert detect_challenge(opt) == "cloudflare_challenge"
        assert detect_challenge(orchestrate) == "cloudflare_challenge"

    def test_cloudflare_jsd_script_is_not_a_challenge(self):
        """Test the script Cloudflare injects into ordinary pages is ignored."""
        html = (
            "<html><head><title>Acme Widgets</title></head><body><p>Hello</p>"
            '<script src="/cdn-cgi/challenge-platform/scripts/jsd/main.js"></script>'
            "</body></html>"
        )
        assert detect_challenge(html, "https://acme.example/") is None

    def test_turnstile_widget_page(self):
        html = '<html><body><div class="cf-turnstile" data-sitekey="x"></div></body></html>'
        assert detect_challenge(html) == "turnstile"

    def test_challenge_text(self):
        html = "<html><body><h1>Please verify you are human</h1></body></html>"
        assert detect_challenge(html) == "challenge_text"

    def test_short_captcha_page(self):
        """Test a bare CAPTCHA page is detected."""
        html = '<html><body><div class="g-recaptcha" data-sitekey="x"></div></body></html>'
        assert detect_challenge(html) == "recaptcha"

    def test_hcaptcha_page(self):
        html = '<html><body><div class="h-captcha"></div></body></html>'
        assert detect_challenge(html) == "hcaptcha"

    def test_contact_form_captcha_on_real_page_is_ignored(self):
        """Test a long page with a reCAPTCHA contact form is not a challenge."""
        filler = "<p>" + "We build widgets. " * 100 + "</p>"
        html = (
            "<html><body>"
            + filler * ((CAPTCHA_PAGE_MAX_LENGTH // len(filler)) + 1)
            + '<form><div class="g-recaptcha"></div></form></body></html>'
        )
        assert len(html) > CAPTCHA_PAGE_MAX_LENGTH
        assert detect_challenge(html) is None

    def test_challenge_url(self):
        url = "https://acme.example/cdn-cgi/challenge-platform/h/b/orchestrate"
        assert detect_challenge("<html></html>", url) == "url_pattern:/cdn-cgi/challenge"

    def test_ordinary_page(self):
        html = "<html><head><title>Acme Widgets</title></head><body><p>Hello</p></body></html>"
        assert detect_challenge(html, "https://acme.example/") is None
        assert is_challenge_page(html) is False

    def test_empty_body(self):
        assert detect_challenge(None) is None
        assert detect_challenge("") is None

    def test_is_challenge_page(self):
        assert is_challenge_page("<title>Attention Required! | Cloudflare</title>") is True
