"""LegacyLens: reverse-engineer legacy Java source trees into class graphs and call sequences."""

__version__ = "1.0.0"
