"""Long-form source documents to short-form post concepts."""

__version__ = "2.0.0"
