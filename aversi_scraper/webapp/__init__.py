"""HTTP control surface for crawl runs."""
