"""Core runtime modules for partint."""

__all__ = [
    "cache",
    "config",
    "exceptions",
    "grouping",
    "integral",
    "names",
    "product",
    "spec_parser",
    "terms",
]
