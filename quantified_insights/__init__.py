"""Quantified Insights - correlation discovery for daily personal metrics."""

__version__ = "0.1.0"
