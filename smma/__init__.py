"""SMMA: crawl a website and turn it into a social-media marketing plan."""

__version__ = "0.1.0"
