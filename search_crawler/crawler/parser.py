"""
Web page parser for extracting normalized words and outbound links.
"""

import re
import logging
from typing import List, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit
from dataclasses import dataclass, field
from bs4 import BeautifulSoup, Comment
from nltk.stem import PorterStemmer

from ..exceptions import ParseError


ALLOWED_SCHEMES = ('http', 'https')
SKIP_HREF_PREFIXES = ('#', 'javascript:', 'mailto:', 'tel:', 'data:')
DEFAULT_PORTS = {'http': 80, 'https': 443}

# Named, decimal and hexadecimal character references
ENTITY_PATTERN = re.compile(r'&(?:#[0-9]+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);')
NON_WORD_PATTERN = re.compile(r'[\W_]+')


@dataclass
class ParsedContent:
    """Container for parsed web page content."""
    url: str
    words: List[str] = field(default_factory=list)
    links: List[str] = field(default_factory=list)

    @property
    def word_count(self) -> int:
        return len(self.words)


def normalize_url(url: str) -> Optional[str]:
    """
    Normalize an absolute URL into a location key.

    Lower-cases scheme and host, drops default ports and the fragment, and
    maps an empty path to ``/``. The query string is kept as is.

    Returns:
        The normalized URL, or None if the URL is not an absolute http(s) URL
    """
    if not url:
        return None

    try:
        parsed = urlsplit(url.strip())
        scheme = parsed.scheme.lower()
        host = (parsed.hostname or '').lower()
        port = parsed.port
    except ValueError:
        return None

    if scheme not in ALLOWED_SCHEMES or not host:
        return None

    netloc = f"[{host}]" if ':' in host else host
    if port is not None and port != DEFAULT_PORTS[scheme]:
        netloc = f"{netloc}:{port}"

    return urlunsplit((scheme, netloc, parsed.path or '/', parsed.query, ''))


def resolve_link(base_url: str, href: Optional[str]) -> Optional[str]:
    """Resolve an href against its page URL, returning a normalized URL or None."""
    if href is None:
        return None

    candidate = href.strip()
    if not candidate or candidate.lower().startswith(SKIP_HREF_PREFIXES):
        return None

    try:
        absolute_url = urljoin(base_url, candidate)
    except ValueError:
        return None

    return normalize_url(absolute_url)


class TextNormalizer:
    """
    Turns text into index words: letters and digits only, case-folded,
    optionally Porter-stemmed.
    """

    def __init__(self, stemming: bool = False):
        self.stemming = stemming
        self._stemmer = PorterStemmer() if stemming else None

    def clean(self, token: str) -> str:
        """Clean a single whitespace-delimited token. May return ''."""
        word = NON_WORD_PATTERN.sub('', token).casefold()
        if word and self._stemmer is not None:
            word = self._stemmer.stem(word)
        return word

    def words(self, text: str) -> List[str]:
        """Split plain text into cleaned words, dropping empty ones."""
        words = []
        for token in text.split():
            word = self.clean(token)
            if word:
                words.append(word)
        return words

    def normalize(self, markup: str) -> List[str]:
        """Extract the words of an HTML document in document order."""
        return self.words(extract_text(_make_soup(strip_entities(markup))))


def strip_entities(markup: str) -> str:
    """Replace HTML character references by a space."""
    return ENTITY_PATTERN.sub(' ', markup)


def _make_soup(markup: str) -> BeautifulSoup:
    soup = BeautifulSoup(markup, 'lxml')

    # Remove script and style elements
    for script in soup(["script", "style", "noscript"]):
        script.decompose()

    # Remove comments
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    return soup


def extract_text(soup: BeautifulSoup) -> str:
    """Visible text of a cleaned soup, one space between text nodes."""
    return soup.get_text(separator=' ')


def extract_links_from_soup(soup: BeautifulSoup, base_url: str) -> List[str]:
    """Normalized anchor targets in document order, duplicates removed."""
    links = []
    seen = set()

    for link in soup.find_all('a', href=True):
        normalized_url = resolve_link(base_url, link['href'])
        if normalized_url and normalized_url not in seen:
            seen.add(normalized_url)
            links.append(normalized_url)

    return links


def extract_links(base_url: str, markup: str) -> List[str]:
    """
    Extract absolute, fragment-free URLs from the anchors of a document.

    Args:
        base_url: The location the markup was fetched from
        markup: Raw HTML

    Returns:
        Normalized URLs in document order
    """
    return extract_links_from_soup(BeautifulSoup(markup, 'lxml'), base_url)


def normalize(markup: str, stemming: bool = False) -> List[str]:
    """Extract the normalized words of an HTML document."""
    return TextNormalizer(stemming).normalize(markup)


class ContentParser:
    """
    Parses HTML content once and extracts both index words and links.
    """

    def __init__(self, normalizer: Optional[TextNormalizer] = None):
        self.normalizer = normalizer or TextNormalizer()
        self.logger = logging.getLogger(__name__)

    def parse(self, url: str, html_content: str) -> ParsedContent:
        """
        Parse HTML content and extract words and links.

        Args:
            url: The URL of the page
            html_content: Raw HTML content

        Returns:
            ParsedContent object with extracted data

        Raises:
            ParseError: If the markup cannot be processed at all
        """
        if html_content is None:
            raise ParseError(url, "no content")

        try:
            # Links are taken before entity stripping so hrefs keep their &amp;
            link_soup = BeautifulSoup(html_content, 'lxml')
            links = extract_links_from_soup(link_soup, url)

            soup = _make_soup(strip_entities(html_content))
            words = self.normalizer.words(extract_text(soup))
        except Exception as e:
            raise ParseError(url, str(e)) from e

        parsed_content = ParsedContent(url=url, words=words, links=links)
        self.logger.debug(f"Parsed content from {url}: {parsed_content.word_count} words, "
                          f"{len(parsed_content.links)} links")
        return parsed_content
