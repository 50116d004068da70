"""quoteflow - quotation to invoice workflow tracking for client engagements."""

__version__ = "0.1.0"
