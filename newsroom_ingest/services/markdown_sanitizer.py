"""
Boilerplate removal and markdown -> HTML conversion for imported articles.

Cleaning is driven by ``BOILERPLATE_RULES``: an ordered tuple of named
patterns, each targeting one kind of page cruft. The HTML conversion is
deliberately narrow (headers, emphasis, images, links, paragraphs); any
other markdown construct is emitted as escaped literal text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from html import escape

IMAGE_CSS_CLASS = "rounded-lg max-w-full my-4"

_SOCIAL_NETWORKS = (
    r"facebook|twitter|linkedin|whatsapp|telegram|instagram|pinterest|youtube|tiktok|threads"
    r"|x\.com"
)
_ICON_TARGETS = r"facebook|twitter|x|instagram|whatsapp|e-?mail|linkedin|telegram|youtube|tiktok"


@dataclass(frozen=True)
class BoilerplateRule:
    name: str
    pattern: re.Pattern[str]
    replacement: str = ""

    def apply(self, markdown: str) -> str:
        return self.pattern.sub(self.replacement, markdown)


def _rule(name: str, pattern: str, flags: int = 0, replacement: str = "") -> BoilerplateRule:
    return BoilerplateRule(name=name, pattern=re.compile(pattern, flags), replacement=replacement)


BOILERPLATE_RULES: tuple[BoilerplateRule, ...] = (
    _rule(
        "site_navigation",
        r"^[ \t]*(?:menu|home|início|inicio|acesse|entre|sair|login|cadastro|buscar?"
        r"|pesquisar?|editar perfil)[ \t]*$",
        re.IGNORECASE | re.MULTILINE,
    ),
    _rule(
        "social_follow",
        rf"^[^\n]*\b(?:siga|sigam|segue|follow)\b[^\n]*\b(?:{_SOCIAL_NETWORKS})\b[^\n]*$",
        re.IGNORECASE | re.MULTILINE,
    ),
    _rule(
        "social_share",
        r"^[ \t]*(?:compartilh(?:ar|e)|share)\b[^\n]{0,60}$",
        re.IGNORECASE | re.MULTILINE,
    ),
    _rule(
        "byline",
        r"^[ \t]*(?i:by|por|autora?|escrito por|written by)[ \t]*:?[ \t]+"
        r"(?:[A-ZÀ-Ý][\w'.À-ÿ-]*[ \t]*){1,5}(?:[ \t]*[|•–—-][^\n]*)?$",
        re.MULTILINE,
    ),
    _rule(
        "dated_byline",
        r"^[A-Za-zÀ-ú \t]+\d{2}/\d{2}/\d{4}[ \t]*$",
        re.MULTILINE,
    ),
    _rule(
        "newsletter_cta",
        r"^[^\n]*(?:inscreva-se|subscribe|newsletter|cadastre-se|sign up|assine|receba)"
        r"[^\n]{0,100}(?:email|e-mail|grátis|gratis|free|notícias|noticias|news)[^\n]*$",
        re.IGNORECASE | re.MULTILINE,
    ),
    _rule(
        "related_articles",
        r"^[ \t]*(?:(?:[-*][ \t]*(?:entenda|saiba|confira|leia|veja)\b)"
        r"|(?:leia (?:também|mais)|veja (?:também|mais)|related(?: articles| posts)?"
        r"|read more|read next)\b)[^\n]*$",
        re.IGNORECASE | re.MULTILINE,
    ),
    _rule(
        "comment_section",
        r"^[ \t]*(?:#{1,6}[ \t]*)?(?:\d+[ \t]+)?(?:comentários?|comentarios?|comments?|comente"
        r"|deixe (?:um|seu) comentário|leave a (?:comment|reply)|carregar mais(?: comentários)?"
        r"|load more(?: comments)?|cancelar[ \t]*publicar)[ \t]*:?[ \t]*$",
        re.IGNORECASE | re.MULTILINE,
    ),
    _rule(
        "copyright",
        r"^[ \t]*(?:©|copyright|\(c\)|todos os direitos|all rights)[^\n]*$",
        re.IGNORECASE | re.MULTILINE,
    ),
    _rule(
        "tag_labels",
        r"^[ \t]*(?:tags?|categorias?|categories|category)[ \t]*:[^\n]*$",
        re.IGNORECASE | re.MULTILINE,
    ),
    _rule(
        "breadcrumbs",
        r"^[^\n>#!\[][^\n>]*>[^\n>]+>[^\n]+$",
        re.MULTILINE,
    ),
    _rule(
        "editorial_credit",
        r"^[ \t]*(?:redação|redacao|editorial|editor\(a\))[ \t]*$",
        re.IGNORECASE | re.MULTILINE,
    ),
    _rule(
        "social_icon_labels",
        rf"(?:ícone|icone|icon)[ \t]*(?:do|da|de|of)?[ \t]*(?:{_ICON_TARGETS})\b",
        re.IGNORECASE,
    ),
    _rule(
        "social_icon_tokens",
        rf"^[ \t]*(?:{_ICON_TARGETS}|{_SOCIAL_NETWORKS})"
        rf"(?:[ \t|,•·/]+(?:{_ICON_TARGETS}|{_SOCIAL_NETWORKS}))*[ \t]*$",
        re.IGNORECASE | re.MULTILINE,
    ),
    _rule("date_lines", r"^[ \t]*\d{2}/\d{2}/\d{4}[ \t]*$", re.MULTILINE),
    _rule("separator_lines", r"^[ \t]*[*\-_=|:]+[ \t]*$", re.MULTILINE),
    _rule("empty_link_markers", r"(?<!!)\[\s*\](?!\()|(?<!\])\(\s*\)|\(\s*:/{0,3}[^)\s]*\)"),
)

_IMAGE_REF_RE = re.compile(r"!\[([^\]]*)\]\(([^)\s]+)(?:\s+\"[^\"]*\")?\)")
_LEADING_IMAGE_RE = re.compile(r"\A!\[[^\]]*\]\([^)]+\)[ \t]*\n*")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")

_DECORATIVE_IMAGE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"icon",
        r"logo",
        r"avatar",
        r"favicon",
        r"badge",
        r"button",
        r"social",
        r"share",
        rf"(?:{_SOCIAL_NETWORKS})",
        r"sprite",
        r"1x1",
        r"pixel",
        r"tracking",
        r"(?:^|[/\-_.])ads?[/\-_]",
        r"banners?/",
    )
)
_IMAGE_EXTENSION_RE = re.compile(r"\.(?:jpe?g|png|gif|webp|svg|avif)(?:\?.*)?$", re.IGNORECASE)
_IMAGE_CDN_RE = re.compile(r"wp-content/uploads|cdn|img\.|images?\.", re.IGNORECASE)


def clean(markdown: str, featured_image_url: str | None = None) -> str:
    content = markdown.replace("\r\n", "\n").replace("\r", "\n").lstrip()
    featured_filename = image_filename(featured_image_url) if featured_image_url else None

    def _filter_image(match: re.Match[str]) -> str:
        url = match.group(2)
        if not is_content_image(url):
            return ""
        if featured_filename and image_filename(url) == featured_filename:
            return ""
        return match.group(0)

    content = _IMAGE_REF_RE.sub(_filter_image, content)
    # TODO: only drop the leading image when it resembles the featured image once
    # editors confirm real opening images are being lost.
    # Only an image at the very start of the page counts; blank lines left
    # behind by the filter above keep the next image in place.
    content = _LEADING_IMAGE_RE.sub("", content, count=1)

    for rule in BOILERPLATE_RULES:
        content = rule.apply(content)

    return normalize_whitespace(content)


def normalize_whitespace(content: str) -> str:
    lines = [line.lstrip() for line in content.split("\n")]
    collapsed = _EXCESS_NEWLINES_RE.sub("\n\n", "\n".join(lines))
    return collapsed.strip()


def image_filename(url: str | None) -> str | None:
    if not url:
        return None
    filename = url.split("?", 1)[0].split("#", 1)[0].rstrip("/").rsplit("/", 1)[-1]
    return filename or None


def is_content_image(url: str) -> bool:
    if not url.startswith(("http://", "https://")):
        return False
    if any(pattern.search(url) for pattern in _DECORATIVE_IMAGE_PATTERNS):
        return False
    return bool(_IMAGE_EXTENSION_RE.search(url) or _IMAGE_CDN_RE.search(url))


_HEADER_RE = re.compile(r"^(#{1,6})[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$", re.MULTILINE)
_BOLD_ITALIC_RE = re.compile(r"\*\*\*(.+?)\*\*\*")
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_ITALIC_RE = re.compile(r"\*(.+?)\*")
_HTML_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)\s]+)\)")
_HTML_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")
_PARAGRAPH_RE = re.compile(r"<p>(.*?)</p>", re.DOTALL)
_HEADER_BLOCK_RE = re.compile(r"(<h[1-6]>.*?</h[1-6]>)", re.DOTALL)
_EDGE_BREAKS_RE = re.compile(r"^(?:\s*<br/>)+|(?:<br/>\s*)+$")
_EMPTY_PARAGRAPH_RE = re.compile(r"<p>(?:\s|<br/>)*</p>")
_IMAGE_ONLY_PARAGRAPH_RE = re.compile(r"<p>(<img [^>]+>)</p>")
_EXCESS_BREAKS_RE = re.compile(r"(?:<br/>){3,}")
# Targets are matched after HTML escaping, so entity-encoded schemes never pass.
_SAFE_IMAGE_SCHEMES = ("http://", "https://")
_SAFE_LINK_SCHEMES = ("http://", "https://", "mailto:")


def to_html(markdown: str) -> str:
    text = escape(markdown.replace("\r\n", "\n").strip(), quote=True)
    if not text:
        return ""

    text = _HEADER_RE.sub(_render_header, text)
    text = _BOLD_ITALIC_RE.sub(r"<strong><em>\1</em></strong>", text)
    text = _BOLD_RE.sub(r"<strong>\1</strong>", text)
    text = _ITALIC_RE.sub(r"<em>\1</em>", text)
    text = _HTML_IMAGE_RE.sub(_render_image, text)
    text = _HTML_LINK_RE.sub(_render_link, text)

    html = "<p>" + re.sub(r"\n{2,}", "</p><p>", text).replace("\n", "<br/>") + "</p>"
    html = _lift_headers_out_of_paragraphs(html)
    html = _EMPTY_PARAGRAPH_RE.sub("", html)
    html = _IMAGE_ONLY_PARAGRAPH_RE.sub(r"\1", html)
    return _EXCESS_BREAKS_RE.sub("<br/><br/>", html)


def sanitize_to_html(markdown: str, featured_image_url: str | None = None) -> str:
    return to_html(clean(markdown, featured_image_url))


def _render_header(match: re.Match[str]) -> str:
    level = len(match.group(1))
    return f"<h{level}>{match.group(2)}</h{level}>"


def _render_image(match: re.Match[str]) -> str:
    alt, src = match.group(1), match.group(2)
    if not src.lower().startswith(_SAFE_IMAGE_SCHEMES):
        return alt
    return f'<img src="{src}" alt="{alt}" class="{IMAGE_CSS_CLASS}" />'


def _render_link(match: re.Match[str]) -> str:
    label, href = match.group(1), match.group(2)
    if not href.lower().startswith(_SAFE_LINK_SCHEMES):
        return label
    return f'<a href="{href}" target="_blank" rel="noopener noreferrer">{label}</a>'


def _lift_headers_out_of_paragraphs(html: str) -> str:
    def _rewrite(match: re.Match[str]) -> str:
        rendered: list[str] = []
        for part in _HEADER_BLOCK_RE.split(match.group(1)):
            if _HEADER_BLOCK_RE.fullmatch(part):
                rendered.append(part)
                continue
            body = _EDGE_BREAKS_RE.sub("", part).strip()
            if body:
                rendered.append(f"<p>{body}</p>")
        return "".join(rendered)

    return _PARAGRAPH_RE.sub(_rewrite, html)
