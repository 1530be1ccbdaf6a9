"""Declarative release gates evaluated against cluster objects."""

__version__ = "0.1.0"
