"""DeployDeck: cached, paginated data layer for a Vercel mobile client."""

__version__ = "0.1.0"
