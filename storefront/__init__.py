"""Deal Storefront: affiliate offers feed with curation, engagement and enrichment."""

__version__ = "1.0.0"
