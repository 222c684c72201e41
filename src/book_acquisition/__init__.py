"""
book-acquisition: Acquisition ingestion and budget allocation engine.

Pulls candidate titles from a JSON catalog API and an XML recommendation
feed, normalizes them into one Book model, and tracks spending on confirmed
titles against a category-allocated budget.
"""

__version__ = "0.1.0"
