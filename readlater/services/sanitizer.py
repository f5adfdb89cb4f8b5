from bleach.sanitizer import Cleaner
from bs4 import BeautifulSoup, Comment, Doctype


_ALLOWED_TAGS = {
    "a",
    "abbr",
    "article",
    "b",
    "blockquote",
    "br",
    "caption",
    "cite",
    "code",
    "dd",
    "del",
    "div",
    "dl",
    "dt",
    "em",
    "figcaption",
    "figure",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "hr",
    "i",
    "img",
    "ins",
    "kbd",
    "li",
    "mark",
    "ol",
    "p",
    "pre",
    "q",
    "s",
    "section",
    "small",
    "span",
    "strong",
    "sub",
    "sup",
    "table",
    "tbody",
    "td",
    "tfoot",
    "th",
    "thead",
    "time",
    "tr",
    "u",
    "ul",
}

_ALLOWED_ATTRS = {
    "a": ["href", "title"],
    "abbr": ["title"],
    "blockquote": ["cite"],
    "img": ["alt", "title", "src", "width", "height"],
    "ol": ["start"],
    "q": ["cite"],
    "td": ["colspan", "rowspan"],
    "th": ["colspan", "rowspan", "scope"],
    "time": ["datetime"],
}

_ALLOWED_PROTOCOLS = ["http", "https", "mailto"]

# Dropped together with everything inside them, not just unwrapped
_DROP_WITH_CONTENT = (
    "script",
    "style",
    "noscript",
    "template",
    "iframe",
    "frame",
    "frameset",
    "object",
    "embed",
    "applet",
    "form",
    "svg",
    "math",
)

_CLEANER = Cleaner(
    tags=sorted(_ALLOWED_TAGS),
    attributes=_ALLOWED_ATTRS,
    protocols=_ALLOWED_PROTOCOLS,
    strip=True,
    strip_comments=True,
)

# html.parser and the cleaner's own parser disagree on misnested markup, so
# one pass is not always a fixed point
_MAX_PASSES = 8


def _clean_once(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for element in soup.find_all(string=lambda node: isinstance(node, (Comment, Doctype))):
        element.extract()
    for tag in soup.find_all(_DROP_WITH_CONTENT):
        if not tag.decomposed:
            tag.decompose()
    body = soup.body
    fragment = body.decode_contents() if body else soup.decode()
    return _CLEANER.clean(fragment).strip()


def sanitize_html(html: str) -> str:
    """Return ``html`` reduced to an allow-listed fragment safe for display.

    Scripts, styles, embedded documents and forms are removed with their
    content; other disallowed tags are unwrapped; event handler attributes
    and non-http(s)/mailto URLs are dropped. The fragment is cleaned until
    it stops changing, so sanitizing the output again returns it unchanged.
    """
    if not html:
        return ""
    cleaned = _clean_once(html)
    for _ in range(_MAX_PASSES):
        again = _clean_once(cleaned)
        if again == cleaned:
            break
        cleaned = again
    return cleaned
