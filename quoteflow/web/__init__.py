"""quoteflow HTTP API."""
