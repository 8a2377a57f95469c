"""wikirag: retrieval-augmented chat over a wiki content API."""

__version__ = "0.1.0"
