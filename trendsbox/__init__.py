"""Trends Box: news-driven blog and social post generation."""

__version__ = "1.0.0"
