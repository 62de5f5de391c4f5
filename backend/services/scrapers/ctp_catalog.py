"""Line classification and listing-page extraction for ctpcj.ro."""

from __future__ import annotations

from typing import Dict, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ...config import settings
from ...models.line import Catalog, LineRecord, LineType

LISTING_CONTAINER_SELECTOR = "div.tzPortfolio"
LINE_LABELS = frozenset({"Linia", "Line"})

_LISTING_SLUGS: Dict[LineType, str] = {
    LineType.URBAN: "linii-urbane/",
    LineType.METROPOLITAN: "linii-metropolitane/",
    LineType.NIGHT: "transport-noapte/",
    LineType.EXPRESS: "linie-expres/",
    LineType.SUPERMARKET: "linii-supermarket/",
}


def classify_line(identifier: str) -> LineType:
    """Map a line identifier onto its listing category.

    Rules are applied in order, first match wins: a leading "M" is
    metropolitan, a trailing "N" is night, a trailing "E" is express, a
    leading "99" is supermarket and everything else is urban.
    """
    if identifier[:1] == "M":
        return LineType.METROPOLITAN
    if identifier[-1:] == "N":
        return LineType.NIGHT
    if identifier[-1:] == "E":
        return LineType.EXPRESS
    if identifier[:2] == "99":
        return LineType.SUPERMARKET
    return LineType.URBAN


def listing_url(line_type: LineType, base_url: Optional[str] = None) -> str:
    base = base_url or settings.ctp_base_url
    if not base.endswith("/"):
        base += "/"
    return base + _LISTING_SLUGS[line_type]


def _parse_anchor_label(text: str) -> Optional[str]:
    tokens = text.split()
    if len(tokens) != 2 or tokens[0] not in LINE_LABELS:
        return None
    return tokens[1]


def parse_catalog(html: str, line_type: LineType, page_url: str) -> Catalog:
    """Extract ``{identifier: LineRecord}`` from a listing page.

    Anchors whose text is not exactly "Linia <id>" (or "Line <id>") are
    navigation noise and are ignored.
    """
    soup = BeautifulSoup(html, "html.parser")
    catalog: Catalog = {}
    for container in soup.select(LISTING_CONTAINER_SELECTOR):
        for anchor in container.find_all("a"):
            identifier = _parse_anchor_label(anchor.get_text().strip())
            href = anchor.get("href")
            if identifier is None or not href:
                continue
            catalog[identifier] = LineRecord(url=urljoin(page_url, href.strip()), type=line_type)
    return catalog


def find_line_url(html: str, identifier: str, page_url: str) -> Optional[str]:
    """Return the detail URL advertised for ``identifier``, if any."""
    record = parse_catalog(html, classify_line(identifier), page_url).get(identifier)
    return record.url if record else None
