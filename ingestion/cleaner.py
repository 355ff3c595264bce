"""HTML sanitizing and text cleaning utilities."""
import re
from typing import Union

from bs4 import BeautifulSoup

# Elements that can carry script or styling and never hold catalog data
UNSAFE_TAGS = ["script", "style", "iframe", "object", "embed", "noscript", "link", "meta", "template"]

URL_ATTRIBUTES = ("href", "src", "data-src", "action", "formaction")

_UNSAFE_SCHEMES = re.compile(r'^\s*(javascript|vbscript|data):', re.IGNORECASE)


def sanitize_html(document: Union[str, bytes]) -> BeautifulSoup:
    """Parse a document and strip scripting and style-bearing constructs.

    Args:
        document: Raw HTML

    Returns:
        Parsed, sanitized soup
    """
    soup = BeautifulSoup(document, "html.parser")

    for tag in soup.find_all(UNSAFE_TAGS):
        tag.decompose()

    for tag in soup.find_all(True):
        for attr in list(tag.attrs):
            if attr.lower().startswith("on") or attr.lower() == "style":
                del tag.attrs[attr]
            elif attr.lower() in URL_ATTRIBUTES and _UNSAFE_SCHEMES.match(str(tag.attrs[attr])):
                del tag.attrs[attr]

    return soup


def clean_text(text: str) -> str:
    """Collapse whitespace runs into single spaces.

    Args:
        text: Raw text

    Returns:
        Cleaned text
    """
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


def sanitize_text(value: str) -> str:
    """Remove any markup from a text field and normalize whitespace."""
    if not value:
        return ""
    if "<" in value:
        value = BeautifulSoup(value, "html.parser").get_text(" ")
    return clean_text(value)


def sanitize_url(value: str) -> str:
    """Return the URL stripped of whitespace, or empty if it is not http(s)."""
    if not value:
        return ""
    value = value.strip()
    if not re.match(r'^https?://', value, re.IGNORECASE):
        return ""
    return re.sub(r'\s', '%20', value)
