"""Scrapers for the CTP Cluj website, which exposes no API."""

from .browser import BrowserManager, PageLoadError, should_block_resource
from .ctp_catalog import classify_line, find_line_url, listing_url, parse_catalog
from .ctp_schedule import TimeParseError, parse_schedule, table_index_for_day

__all__ = [
    "BrowserManager",
    "PageLoadError",
    "TimeParseError",
    "classify_line",
    "find_line_url",
    "listing_url",
    "parse_catalog",
    "parse_schedule",
    "should_block_resource",
    "table_index_for_day",
]
