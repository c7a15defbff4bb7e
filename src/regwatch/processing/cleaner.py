"""
HTML to plain text normalization.
"""

import re

from bs4 import BeautifulSoup

REMOVE_TAGS = ("script", "style")

_WHITESPACE_RE = re.compile(r"\s+")


def clean_html(html: str) -> str:
    """
    Reduce an HTML document to whitespace-normalized text.

    Script and style blocks are dropped together with their content,
    remaining markup is stripped, entities are decoded and every run of
    whitespace becomes a single space. Never raises on malformed markup.

    Example:
        >>> clean_html("<p>Fees &amp; charges</p><script>x()</script>")
        'Fees & charges'
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for tag_name in REMOVE_TAGS:
        for tag in soup.find_all(tag_name):
            tag.decompose()

    text = soup.get_text(separator=" ")
    return _WHITESPACE_RE.sub(" ", text).strip()
