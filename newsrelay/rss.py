"""RSS feed fetching and parsing for the news relay."""

import re
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Sequence
from urllib.parse import urlparse

import requests

from .errors import FetchFailure, ParseFailure
from .logging_config import create_execution_logger
from .models import NewsItem, ParseResult
from .text import MAX_DESCRIPTION_LENGTH, normalize_description, normalize_title

MAX_ITEMS = 50


class ParseStrategy(ABC):
    """One way of turning raw feed text into a ParseResult."""

    name = "base"

    def __init__(
        self,
        max_items: int = MAX_ITEMS,
        max_description_length: int = MAX_DESCRIPTION_LENGTH,
    ):
        self.max_items = max_items
        self.max_description_length = max_description_length

    @abstractmethod
    def parse(self, text: str) -> ParseResult:
        """Parse feed text.

        Raises:
            ParseFailure: If the text cannot be read by this strategy
        """

    def build_item(self, raw_title: str | None, raw_description: str | None):
        """Normalize raw fields into a NewsItem, or None when the title is empty."""
        title = normalize_title(raw_title)
        if not title:
            return None
        description = normalize_description(
            raw_description, self.max_description_length
        )
        return NewsItem(title=title, description=description)


RSS1_NAMESPACE = "http://purl.org/rss/1.0/"


def _rss_name(tag) -> str:
    """Lower-cased name of a plain or RSS 1.0 element; "" for anything else.

    Extension elements such as ``media:title`` or ``dc:title`` live in other
    namespaces and never stand in for the item's own fields.
    """
    if not isinstance(tag, str):
        return ""
    if tag.startswith("{"):
        namespace, _, tag = tag[1:].partition("}")
        if namespace != RSS1_NAMESPACE:
            return ""
    return tag.lower()


class XmlTreeStrategy(ParseStrategy):
    """Parses the feed as an XML document and walks the element tree."""

    name = "xml_tree"

    def parse(self, text: str) -> ParseResult:
        try:
            root = ET.fromstring(text.strip())
        except ET.ParseError as e:
            raise ParseFailure(f"Feed is not well-formed XML: {e}") from e

        channel_title = ""
        channel = self._first(root.iter(), "channel")
        if channel is not None:
            title_node = self._first_descendant(channel, "title")
            if title_node is not None:
                channel_title = normalize_title(self._text_content(title_node))

        items = []
        for element in root.iter():
            if len(items) >= self.max_items:
                break
            if _rss_name(element.tag) != "item":
                continue

            title_node = self._first_descendant(element, "title")
            if title_node is None:
                continue
            description_node = self._first_descendant(element, "description")
            description = (
                self._text_content(description_node)
                if description_node is not None
                else ""
            )

            item = self.build_item(self._text_content(title_node), description)
            if item is not None:
                items.append(item)

        return ParseResult(channel_title=channel_title, items=tuple(items))

    @staticmethod
    def _first(elements: Iterator[ET.Element], name: str) -> ET.Element | None:
        for element in elements:
            if _rss_name(element.tag) == name:
                return element
        return None

    def _first_descendant(self, element: ET.Element, name: str) -> ET.Element | None:
        descendants = element.iter()
        next(descendants)  # skip the element itself
        return self._first(descendants, name)

    @staticmethod
    def _text_content(element: ET.Element) -> str:
        return "".join(element.itertext())


XML_ESCAPES = {"amp": "&", "lt": "<", "gt": ">", "quot": '"', "apos": "'"}
XML_REFERENCE_PATTERN = re.compile(r"&(amp|lt|gt|quot|apos|#[0-9]+|#[xX][0-9a-fA-F]+);")
# CDATA sections keep their text; comments and processing instructions have none
MARKUP_SECTION_PATTERN = re.compile(
    r"<!\[CDATA\[([\s\S]*?)\]\]>|<!--[\s\S]*?-->|<\?[\s\S]*?\?>"
)


def _resolve_reference(match: re.Match) -> str:
    reference = match.group(1)
    if not reference.startswith("#"):
        return XML_ESCAPES[reference]
    try:
        if reference[1] in "xX":
            return chr(int(reference[2:], 16))
        return chr(int(reference[1:]))
    except (ValueError, OverflowError):
        return match.group(0)


def unescape_xml_text(raw: str) -> str:
    """Resolve XML-level escaping the way an XML parser would.

    Predefined entities and character references outside CDATA sections are
    replaced in one pass. CDATA content is kept literally, without markers,
    so split sections such as ``<![CDATA[a]]]]><![CDATA[>b]]>`` join up
    again. Comments and processing instructions are dropped.
    """
    pieces = []
    position = 0
    for section in MARKUP_SECTION_PATTERN.finditer(raw):
        pieces.append(
            XML_REFERENCE_PATTERN.sub(_resolve_reference, raw[position : section.start()])
        )
        if section.group(1) is not None:
            pieces.append(section.group(1))
        position = section.end()
    pieces.append(XML_REFERENCE_PATTERN.sub(_resolve_reference, raw[position:]))
    return "".join(pieces)


def _element_pattern(name: str) -> re.Pattern:
    """Match ``<name ...>content</name>`` or ``<name .../>``.

    Group 1 is the raw content, None for an empty-element tag. CDATA
    sections and comments inside the content are consumed whole, so a
    closing tag written inside them does not end the element.
    """
    return re.compile(
        rf"<{name}(?:\s[^>]*?)?"
        rf"(?:/>|>((?:(?><!\[CDATA\[[\s\S]*?\]\]>|<!--[\s\S]*?-->|[\s\S]))*?)</{name}\s*>)",
        re.IGNORECASE,
    )


def _markup_sections(text: str) -> list[tuple[int, int]]:
    return [section.span() for section in MARKUP_SECTION_PATTERN.finditer(text)]


def _search(
    pattern: re.Pattern,
    text: str,
    sections: list[tuple[int, int]],
    position: int = 0,
) -> re.Match | None:
    """First match of ``pattern`` that does not start inside a CDATA section or comment."""
    while True:
        match = pattern.search(text, position)
        if match is None:
            return None
        enclosing_end = next(
            (end for start, end in sections if start <= match.start() < end), None
        )
        if enclosing_end is None:
            return match
        position = enclosing_end


class RegexStrategy(ParseStrategy):
    """Pattern-matching fallback for feeds that are not well-formed XML.

    Only plain ``channel``, ``item``, ``title`` and ``description`` tags are
    recognized, and field text gets the same XML-level unescaping a parser
    would apply, so well-formed feeds produce the same result as
    XmlTreeStrategy.
    """

    name = "regex"

    CHANNEL_OPEN_PATTERN = re.compile(r"<channel(?:\s[^>]*?)?(?<!/)>", re.IGNORECASE)
    ITEM_PATTERN = _element_pattern("item")
    TITLE_PATTERN = _element_pattern("title")
    DESCRIPTION_PATTERN = _element_pattern("description")

    def parse(self, text: str) -> ParseResult:
        if not text:
            return ParseResult()
        sections = _markup_sections(text)

        channel_title = ""
        channel_match = _search(self.CHANNEL_OPEN_PATTERN, text, sections)
        if channel_match:
            title_match = _search(self.TITLE_PATTERN, text, sections, channel_match.end())
            channel_title = normalize_title(self._field_text(title_match))

        items = []
        position = 0
        while len(items) < self.max_items:
            item_match = _search(self.ITEM_PATTERN, text, sections, position)
            if item_match is None:
                break
            position = item_match.end()

            content = item_match.group(1) or ""
            content_sections = _markup_sections(content)
            title_match = _search(self.TITLE_PATTERN, content, content_sections)
            if not title_match:
                continue
            description_match = _search(self.DESCRIPTION_PATTERN, content, content_sections)

            item = self.build_item(
                self._field_text(title_match), self._field_text(description_match)
            )
            if item is not None:
                items.append(item)

        return ParseResult(channel_title=channel_title, items=tuple(items))

    @staticmethod
    def _field_text(match: re.Match | None) -> str:
        if match is None:
            return ""
        return unescape_xml_text(match.group(1) or "")


class FeedParser:
    """Tries each parse strategy in turn until one yields items."""

    def __init__(
        self,
        strategies: Sequence[ParseStrategy] | None = None,
        execution_id: str | None = None,
    ):
        """Initialize FeedParser.

        Args:
            strategies: Strategies in priority order (tree first, then regex)
            execution_id: Execution ID for logging context
        """
        self.strategies = (
            list(strategies)
            if strategies is not None
            else [XmlTreeStrategy(), RegexStrategy()]
        )
        self.logger = create_execution_logger("feed_parser", execution_id)
        self.last_strategy: str | None = None

    def parse(self, text: str, feed_url: str = "") -> ParseResult:
        """Parse feed text into one batch.

        A strategy that raises or returns no items hands over to the next one.
        If every strategy comes up empty the result is an empty batch, carrying
        the first channel title any strategy found.

        Args:
            text: Raw feed document
            feed_url: Source URL, for logging only

        Returns:
            ParseResult with at most ``max_items`` items
        """
        self.logger.info(
            "Starting feed parsing", feed_url=feed_url, text_length=len(text or "")
        )
        self.last_strategy = None
        channel_title = ""

        for strategy in self.strategies:
            try:
                result = strategy.parse(text or "")
            except Exception as e:
                self.logger.warning(
                    f"Parse strategy {strategy.name} failed: {e}",
                    feed_url=feed_url,
                    strategy=strategy.name,
                    error=str(e),
                )
                continue

            if not result.is_empty:
                self.last_strategy = strategy.name
                self.logger.log_feed_parsed(feed_url, len(result.items), strategy.name)
                return result

            channel_title = channel_title or result.channel_title
            self.logger.info(
                f"Parse strategy {strategy.name} found no items",
                feed_url=feed_url,
                strategy=strategy.name,
            )

        self.logger.warning("No valid items found in feed", feed_url=feed_url)
        return ParseResult(channel_title=channel_title)


class FeedFetcher:
    """Downloads feed documents over HTTP."""

    def __init__(self, timeout: float = 30, execution_id: str | None = None):
        """Initialize FeedFetcher with configuration.

        Args:
            timeout: HTTP request timeout in seconds
            execution_id: Execution ID for logging context
        """
        self.timeout = timeout
        self.logger = create_execution_logger("feed_fetcher", execution_id)
        self.session = requests.Session()
        self.session.headers.update(
            {
                "User-Agent": "NewsRelay/1.0 (RSS to companion device relay)",
                "Accept": "application/rss+xml, application/xml, text/xml, */*",
            }
        )

        self.logger.info("FeedFetcher initialized", timeout=timeout)

    def fetch(self, feed_url: str) -> str:
        """Download a feed and return its text.

        Raises:
            FetchFailure: If the URL is unusable, the request fails or the
                server answers with anything but HTTP 200
        """
        parsed_url = urlparse(feed_url or "")
        if parsed_url.scheme not in ("http", "https") or not parsed_url.netloc:
            self.logger.error("Invalid feed URL", feed_url=feed_url)
            raise FetchFailure(feed_url, "URL must be an absolute http(s) URL")

        try:
            self.logger.info("Downloading feed content", feed_url=feed_url)
            response = self.session.get(feed_url, timeout=self.timeout)
        except requests.RequestException as e:
            self.logger.error(
                f"Network error while fetching feed {feed_url}: {e}",
                feed_url=feed_url,
                error=str(e),
            )
            raise FetchFailure(feed_url, str(e)) from e

        if response.status_code != 200:
            self.logger.error(
                f"Request failed with status: {response.status_code}",
                feed_url=feed_url,
                status_code=response.status_code,
            )
            raise FetchFailure(
                feed_url,
                f"HTTP status {response.status_code}",
                status_code=response.status_code,
            )

        # requests falls back to ISO-8859-1 for text/* without a charset
        if "charset" not in response.headers.get("Content-Type", "").lower():
            response.encoding = response.apparent_encoding or "utf-8"

        self.logger.info(
            "Feed downloaded successfully",
            feed_url=feed_url,
            status_code=response.status_code,
            content_length=len(response.content),
        )
        return response.text

    def request(
        self,
        feed_url: str,
        on_complete: Callable[[str], None],
        on_error: Callable[[FetchFailure], None],
    ) -> None:
        """Fetch a feed and report the outcome through callbacks."""
        try:
            text = self.fetch(feed_url)
        except FetchFailure as e:
            on_error(e)
            return
        on_complete(text)
