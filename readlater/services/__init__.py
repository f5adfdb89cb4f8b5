from .extractor import ExtractedArticle, extract_article
from .fetcher import FetchedContent, build_client, fetch_content
from .sanitizer import sanitize_html

__all__ = [
    "ExtractedArticle",
    "FetchedContent",
    "build_client",
    "extract_article",
    "fetch_content",
    "sanitize_html",
]
