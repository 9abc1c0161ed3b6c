"""garderie_watch.crawler: page fetching, query parameters and data models."""
