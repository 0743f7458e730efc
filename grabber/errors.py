from __future__ import annotations


class GrabberError(Exception):
    """Base error for crawl failures."""


class ExtractionError(GrabberError):
    """A single node, row or field could not be read from the page."""


class CrawlTimeoutError(GrabberError, TimeoutError):
    """A bounded wait for a page event expired."""


class UnsupportedTargetError(GrabberError):
    """The input URL does not belong to any supported site."""
