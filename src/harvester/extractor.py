"""
Extraction steps over rendered HTML.

Pure functions from serialized DOM (plus its URL) to the pieces of a page
record. The renderer runs them after navigation; the crawler reuses
`extract_links` for frontier expansion.
"""

import logging
import re
import struct
from typing import Optional
from urllib.parse import quote, urljoin, urlparse

from bs4 import BeautifulSoup

from harvester.constants import MAX_TEXT_LINKS, MIN_PARAGRAPH_LENGTH, SCRIPT_DENY_LIST
from harvester.models import ExtractedImage, PageMetadata, TextContent

logger = logging.getLogger(__name__)


# Computed-style probe run in the page; every value is optional
DESIGN_TOKENS_SCRIPT = """
() => {
    const colors = {};
    const typography = {};
    const spacing = {};

    const body = document.body;
    if (body) {
        const style = window.getComputedStyle(body);
        colors.background = style.backgroundColor;
        colors.text = style.color;
    }

    const heading = document.querySelector('h1, h2, h3, h4, h5, h6');
    if (heading) {
        const style = window.getComputedStyle(heading);
        typography.heading_font = style.fontFamily;
        typography.heading_weight = style.fontWeight;
    }

    const p = document.querySelector('p');
    if (p) {
        const style = window.getComputedStyle(p);
        typography.body_font = style.fontFamily;
        typography.body_size = style.fontSize;
    }

    const main = document.querySelector('main') || document.body;
    if (main) {
        const style = window.getComputedStyle(main);
        spacing.section_padding = style.padding;
        spacing.container_max_width = style.maxWidth;
    }

    const button = document.querySelector('button, a.button, .btn');
    if (button) {
        colors.primary = window.getComputedStyle(button).backgroundColor;
    }

    return { colors, typography, spacing };
}
"""

# Scrolls one viewport at a time so lazy loaders swap in real image URLs,
# then waits (bounded) for pending images before returning to the top
LAZY_IMAGES_SCRIPT = """
async () => {
    const pause = (ms) => new Promise(resolve => setTimeout(resolve, ms));
    const viewport = window.innerHeight || 800;
    const height = document.documentElement.scrollHeight;
    const steps = Math.min(Math.ceil(height / viewport), 10);

    for (let i = 0; i < steps; i++) {
        window.scrollTo(0, i * viewport);
        await pause(250);
    }
    window.scrollTo(0, 0);

    const pending = Array.from(document.images)
        .filter(img => !img.complete)
        .map(img => new Promise(resolve => {
            img.addEventListener('load', resolve, { once: true });
            img.addEventListener('error', resolve, { once: true });
        }));
    await Promise.race([Promise.all(pending), pause(2000)]);
    return steps;
}
"""

# Attributes lazy loaders keep the real image URL in
LAZY_SRC_ATTRIBUTES = ("data-src", "data-lazy-src", "data-original")

BACKGROUND_IMAGE_RE = re.compile(r"background-image\s*:\s*url\(\s*['\"]?([^'\")]+)['\"]?\s*\)", re.IGNORECASE)
BACKGROUND_SHORTHAND_RE = re.compile(r"background\s*:\s*[^;}]*url\(\s*['\"]?([^'\")]+)['\"]?\s*\)", re.IGNORECASE)


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _absolute_http(base_url: str, ref: Optional[str]) -> Optional[str]:
    """Resolve a reference against the page URL; None unless http(s)."""
    if not ref:
        return None
    ref = ref.strip()
    if not ref or ref.startswith("data:"):
        return None
    absolute = urljoin(base_url, ref)
    if urlparse(absolute).scheme not in ("http", "https"):
        return None
    return absolute


def _file_type(url: str) -> Optional[str]:
    path = urlparse(url).path
    if "." not in path.rsplit("/", 1)[-1]:
        return None
    return path.rsplit(".", 1)[-1].lower() or None


def _srcset_urls(srcset: str) -> list[str]:
    urls = []
    for candidate in srcset.split(","):
        parts = candidate.strip().split()
        if parts:
            urls.append(parts[0])
    return urls


def _int_attr(value) -> Optional[int]:
    try:
        return int(str(value).strip().rstrip("px"))
    except (TypeError, ValueError):
        return None


# =============================================================================
# Text and metadata
# =============================================================================

def extract_text_content(html: str, base_url: str = "") -> TextContent:
    """
    Structured text of a page.

    Headings keep their level, paragraphs at or below the boilerplate
    threshold are dropped, list items stay grouped by their list, and at
    most MAX_TEXT_LINKS anchors are kept.
    """
    soup = parse_html(html)

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""

    headings = []
    for heading in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]):
        text = heading.get_text(" ", strip=True)
        if text:
            headings.append({"level": int(heading.name[1]), "text": text})

    paragraphs = []
    for p in soup.find_all("p"):
        text = p.get_text(" ", strip=True)
        if len(text) > MIN_PARAGRAPH_LENGTH:
            paragraphs.append(text)

    lists = []
    for list_tag in soup.find_all(["ul", "ol"]):
        items = [li.get_text(" ", strip=True) for li in list_tag.find_all("li")]
        items = [item for item in items if item]
        if items:
            lists.append(items)

    links = []
    for anchor in soup.find_all("a", href=True):
        text = anchor.get_text(" ", strip=True)
        href = urljoin(base_url, anchor["href"]) if base_url else anchor["href"]
        if text and href:
            links.append({"text": text, "url": href})
        if len(links) >= MAX_TEXT_LINKS:
            break

    return TextContent(
        title=title,
        headings=headings,
        paragraphs=paragraphs,
        lists=lists,
        links=links,
    )


def extract_metadata(html: str) -> PageMetadata:
    """Title, meta description, meta keywords and og:* tags."""
    soup = parse_html(html)

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""

    description_tag = soup.find("meta", attrs={"name": re.compile(r"^description$", re.I)})
    description = (description_tag.get("content") or "").strip() if description_tag else ""

    keywords = []
    for meta in soup.find_all("meta", attrs={"name": re.compile(r"^keywords$", re.I)}):
        if meta.get("content"):
            keywords.extend(k.strip() for k in meta["content"].split(",") if k.strip())

    og_tags = {}
    for meta in soup.find_all("meta", attrs={"property": re.compile(r"^og:", re.I)}):
        content = meta.get("content")
        if content is not None:
            og_tags[meta["property"]] = content

    return PageMetadata(
        title=title,
        description=description,
        keywords=keywords,
        og_tags=og_tags,
    )


def extract_links(html: str, page_url: str) -> list[str]:
    """Absolute http(s) targets of every anchor, in document order."""
    soup = parse_html(html)
    links = []
    for anchor in soup.find_all("a", href=True):
        absolute = _absolute_http(page_url, anchor["href"])
        if absolute:
            links.append(absolute)
    return links


# =============================================================================
# Stylesheets and scripts
# =============================================================================

def inline_styles(html: str) -> list[str]:
    soup = parse_html(html)
    return [style.get_text() for style in soup.find_all("style") if style.get_text().strip()]


def stylesheet_urls(html: str, page_url: str) -> list[str]:
    """Linked stylesheets, deduplicated, in document order."""
    soup = parse_html(html)
    urls = []
    for link in soup.find_all("link", href=True):
        rel = [r.lower() for r in (link.get("rel") or [])]
        if "stylesheet" not in rel:
            continue
        absolute = _absolute_http(page_url, link["href"])
        if absolute and absolute not in urls:
            urls.append(absolute)
    return urls


def is_denied_script(url: str) -> bool:
    lowered = url.lower()
    return any(entry in lowered for entry in SCRIPT_DENY_LIST)


def script_sources(html: str, page_url: str) -> tuple[list[str], list[str]]:
    """
    Inline script bodies and downloadable external script URLs.

    External scripts on the analytics/tag-manager deny list and `data:`
    sources are excluded.

    Returns:
        (inline_bodies, external_urls)
    """
    soup = parse_html(html)
    inline = []
    external = []
    for script in soup.find_all("script"):
        src = script.get("src")
        if src:
            absolute = _absolute_http(page_url, src)
            if absolute and not is_denied_script(absolute) and absolute not in external:
                external.append(absolute)
        else:
            body = script.get_text()
            if body.strip():
                inline.append(body)
    return inline, external


# =============================================================================
# Images
# =============================================================================

def background_image_urls(css: str, base_url: str) -> list[str]:
    """URLs referenced by background-image / background declarations."""
    urls = []
    for regex in (BACKGROUND_IMAGE_RE, BACKGROUND_SHORTHAND_RE):
        for match in regex.finditer(css or ""):
            absolute = _absolute_http(base_url, match.group(1))
            if absolute and absolute not in urls:
                urls.append(absolute)
    return urls


def svg_data_uri(svg_markup: str) -> str:
    return "data:image/svg+xml;charset=utf-8," + quote(svg_markup, safe="")


def discover_images(html: str, page_url: str, css: str = "") -> list[ExtractedImage]:
    """
    Find every image a page shows, tagged with its discovery surface.

    Surfaces: <img> src/srcset, <picture><source>, CSS backgrounds (from
    `css` and style= attributes), inline <svg>, .svg references, favicons
    and touch icons, plus the default /favicon.ico. Deduplicated by URL.
    """
    soup = parse_html(html)
    images: list[ExtractedImage] = []
    seen = set()

    def add(image: ExtractedImage) -> None:
        if image.url in seen:
            return
        seen.add(image.url)
        images.append(image)

    for index, img in enumerate(soup.find_all("img")):
        alt = img.get("alt") or None
        src = _absolute_http(page_url, img.get("src"))
        if src:
            add(ExtractedImage(
                url=src,
                source="svg" if _file_type(src) == "svg" else "img",
                context="SVG file reference" if _file_type(src) == "svg" else f"img[{index}]",
                alt=alt,
                type=_file_type(src),
                width=_int_attr(img.get("width")),
                height=_int_attr(img.get("height")),
            ))
        for attribute in LAZY_SRC_ATTRIBUTES:
            lazy_src = _absolute_http(page_url, img.get(attribute))
            if lazy_src:
                add(ExtractedImage(
                    url=lazy_src,
                    source="img",
                    context=f"img[{index}] {attribute}",
                    alt=alt,
                    type=_file_type(lazy_src),
                    width=_int_attr(img.get("width")),
                    height=_int_attr(img.get("height")),
                ))
        srcset = ", ".join(filter(None, [img.get("srcset"), img.get("data-srcset")]))
        for ref in _srcset_urls(srcset):
            absolute = _absolute_http(page_url, ref)
            if absolute:
                add(ExtractedImage(
                    url=absolute,
                    source="img",
                    context=f"img[{index}] srcset",
                    alt=alt,
                    type=_file_type(absolute),
                ))

    for index, picture in enumerate(soup.find_all("picture")):
        for source in picture.find_all("source"):
            for ref in _srcset_urls(source.get("srcset") or ""):
                absolute = _absolute_http(page_url, ref)
                if absolute:
                    add(ExtractedImage(
                        url=absolute,
                        source="img",
                        context=f"picture[{index}] source",
                        type=_file_type(absolute),
                    ))

    styled_css = [css] if css else []
    for element in soup.find_all(style=True):
        styled_css.append(element["style"])
    for url in background_image_urls("\n".join(styled_css), page_url):
        add(ExtractedImage(
            url=url,
            source="background",
            context="CSS background-image",
            type=_file_type(url),
        ))

    for index, svg in enumerate(soup.find_all("svg")):
        data = svg_data_uri(str(svg))
        add(ExtractedImage(
            url=data,
            source="svg",
            context=f"svg[{index}]",
            type="svg",
            data=data,
        ))

    for obj in soup.find_all("object", attrs={"data": True}):
        absolute = _absolute_http(page_url, obj["data"])
        if absolute and _file_type(absolute) == "svg":
            add(ExtractedImage(
                url=absolute,
                source="svg",
                context="SVG file reference",
                type="svg",
            ))

    for link in soup.find_all("link", href=True):
        rel = " ".join(link.get("rel") or []).lower()
        if "icon" not in rel:
            continue
        absolute = _absolute_http(page_url, link["href"])
        if absolute:
            add(ExtractedImage(
                url=absolute,
                source="inline",
                context="favicon/touch-icon",
                type=_file_type(absolute) or "ico",
            ))

    parsed = urlparse(page_url)
    if parsed.scheme in ("http", "https") and parsed.netloc:
        add(ExtractedImage(
            url=f"{parsed.scheme}://{parsed.netloc}/favicon.ico",
            source="inline",
            context="default favicon",
            type="ico",
        ))

    return images


def image_dimensions(data: bytes) -> tuple[Optional[int], Optional[int]]:
    """Width and height from PNG or GIF headers; (None, None) otherwise."""
    try:
        if data[:8] == b"\x89PNG\r\n\x1a\n":
            width, height = struct.unpack(">II", data[16:24])
            return width, height
        if data[:4] == b"GIF8":
            width, height = struct.unpack("<HH", data[6:10])
            return width, height
    except struct.error:
        return None, None
    return None, None
