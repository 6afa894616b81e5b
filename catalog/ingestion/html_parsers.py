"""
Per-partner extraction from crawled product pages.

Each parser pulls what the page reliably exposes (title, description,
release date, performers) and derives the sample video URL from the
partner's id scheme where one exists.
"""

import logging
import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from catalog.services.product_ids import normalize_mgs_product_id

logger = logging.getLogger(__name__)

DTI_DATE_ID_RE = re.compile(r"^\d{6}_\d{3}$")
MGS_SOD_PREFIX_RE = re.compile(r"^(abw|stars|sdjs|sdab)$", re.IGNORECASE)
MAX_PERFORMER_NAME_LENGTH = 30


@dataclass
class ParsedProduct:
    title: str = ""
    description: str | None = None
    release_date: str | None = None  # YYYY-MM-DD
    duration: int | None = None
    thumbnail_url: str | None = None
    sample_video_url: str | None = None
    performer_names: list[str] = field(default_factory=list)
    price: int | None = None


def clean_text(text: str | None) -> str:
    if not text:
        return ""
    return re.sub(r"\s+", " ", text.strip())


def normalized_id_for_source(source: str, product_id: str) -> str:
    """``{source lowercased, alphanumerics only}-{product_id}``."""
    prefix = re.sub(r"[^a-z0-9]", "", source.lower())
    return f"{prefix}-{product_id}"


class RawPageParser:
    """Base parser: heading / title and meta description."""

    def parse(self, soup: BeautifulSoup, product_id: str) -> ParsedProduct:
        return ParsedProduct(
            title=self._heading(soup),
            description=self._meta_description(soup),
        )

    def _heading(self, soup: BeautifulSoup, selector: str = "h1") -> str:
        found = soup.select_one(selector)
        heading = clean_text(found.get_text()) if found else ""
        return heading or self._page_title(soup)

    def _page_title(self, soup: BeautifulSoup) -> str:
        return clean_text(soup.title.get_text()) if soup.title else ""

    def _meta_description(self, soup: BeautifulSoup) -> str | None:
        meta = soup.find("meta", attrs={"name": "description"})
        content = clean_text(meta.get("content")) if meta else ""
        return content or None

    def _row_value(self, soup: BeautifulSoup, label: str):
        """The cell following a header/label cell containing ``label``."""
        for cell in soup.find_all(["th", "td"]):
            if label in cell.get_text():
                return cell.find_next_sibling("td")
        return None

    def _link_names(self, cell) -> list[str]:
        if cell is None:
            return []
        names = []
        for link in cell.find_all("a"):
            name = clean_text(link.get_text())
            if name and name not in names:
                names.append(name)
        return names


class HeyzoParser(RawPageParser):

    def parse(self, soup: BeautifulSoup, product_id: str) -> ParsedProduct:
        parsed = super().parse(soup, product_id)

        names = [clean_text(span.get_text()) for span in soup.select("tr.table-actor td a span, .table-actor a span")]
        if not names:
            names = self._link_names(self._row_value(soup, "出演"))
        parsed.performer_names = [
            n for n in dict.fromkeys(names)
            if 1 < len(n) < MAX_PERFORMER_NAME_LENGTH
        ]

        if product_id.isdigit():
            padded = f"{int(product_id):04d}"
            parsed.sample_video_url = (
                f"https://sample.heyzo.com/contents/3000/{padded}/heyzo_hd_{padded}_sample.mp4"
            )
        return parsed


class DtiParser(RawPageParser):
    """1pondo and caribbeancom share the date-based id scheme."""

    def __init__(self, site: str):
        self.site = site

    def parse(self, soup: BeautifulSoup, product_id: str) -> ParsedProduct:
        parsed = super().parse(soup, product_id)
        parsed.performer_names = [
            n for n in self._link_names(self._row_value(soup, "出演"))
            if 1 < len(n) < MAX_PERFORMER_NAME_LENGTH
        ]
        if DTI_DATE_ID_RE.match(product_id):
            if self.site == "1pondo":
                parsed.sample_video_url = f"https://smovie.1pondo.tv/sample/movies/{product_id}/1080p.mp4"
            else:
                parsed.sample_video_url = (
                    f"https://www.caribbeancom.com/moviepages/{product_id}/sample/sample.mp4"
                )
        return parsed


class MgsParser(RawPageParser):

    def parse(self, soup: BeautifulSoup, product_id: str) -> ParsedProduct:
        parsed = ParsedProduct(title=self._heading(soup, "h1.tag"))

        release_cell = self._row_value(soup, "配信開始日")
        if release_cell is not None:
            release_text = clean_text(release_cell.get_text())
            if release_text:
                parsed.release_date = release_text.replace("/", "-")

        parsed.performer_names = self._link_names(self._row_value(soup, "出演"))
        parsed.sample_video_url = mgs_sample_video_url(product_id)
        return parsed


class TitleOnlyParser(RawPageParser):
    """FC2 pages: the <title> is the only reliable heading."""

    def parse(self, soup: BeautifulSoup, product_id: str) -> ParsedProduct:
        return ParsedProduct(
            title=self._page_title(soup),
            description=self._meta_description(soup),
        )


def mgs_sample_video_url(product_id: str) -> str | None:
    code = normalize_mgs_product_id(product_id)
    parts = code.split("-")
    if len(parts) < 2:
        return None
    prefix = parts[0].lower()
    lowered = code.lower()
    category = "sod" if MGS_SOD_PREFIX_RE.match(prefix) else "amateur"
    return f"https://sample.mgstage.com/sample/{category}/{prefix}/{lowered}/{lowered}_sample.mp4"


def get_parser(source: str) -> RawPageParser:
    lowered = source.lower()
    if "heyzo" in lowered:
        return HeyzoParser()
    if "1pondo" in lowered:
        return DtiParser("1pondo")
    if "caribbeancom" in lowered:
        return DtiParser("caribbeancom")
    if lowered == "mgs" or "mgstage" in lowered:
        return MgsParser()
    if "fc2" in lowered:
        return TitleOnlyParser()
    return RawPageParser()


def parse_raw_html(source: str, product_id: str, html: str) -> ParsedProduct:
    """Parse a crawled page. The title falls back to the partner product id."""
    soup = BeautifulSoup(html, "html.parser")
    parsed = get_parser(source).parse(soup, product_id)
    if not parsed.title:
        parsed.title = product_id
    return parsed


__all__ = [
    "ParsedProduct",
    "get_parser",
    "mgs_sample_video_url",
    "normalized_id_for_source",
    "parse_raw_html",
]
