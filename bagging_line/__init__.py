"""Bagging line digital twin: metal detector + checkweigher inspection."""

__version__ = "1.0.0"
