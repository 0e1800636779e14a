"""Crawler package: robots-aware, bounded breadth-first site crawl."""

from smma.crawler.classifier import PageType, classify_page
from smma.crawler.crawler import crawl_domain, crawl_site
from smma.crawler.urls import normalize_url

__all__ = ["crawl_domain", "crawl_site", "classify_page", "normalize_url", "PageType"]
