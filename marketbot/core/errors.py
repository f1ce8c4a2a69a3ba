class MarketError(Exception):
    """Base class for economy rotation failures."""


class DocumentError(MarketError):
    """A marker or key path could not be resolved in the catalog document."""


class ParseError(MarketError):
    """A catalog, price table or state file could not be read."""


class NoHistoryError(MarketError):
    """Revert was requested but no previous rotation is stored."""
