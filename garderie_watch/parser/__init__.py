"""garderie_watch.parser: parsing of index and details pages."""

from garderie_watch.parser.listing_parser import ListingParser, parse_detail, parse_index

__all__ = ["ListingParser", "parse_index", "parse_detail"]
