"""Upstream news collectors."""

from .google_rss import GoogleNewsRssFetcher
from .newsapi import NewsApiFetcher

__all__ = ["GoogleNewsRssFetcher", "NewsApiFetcher"]
