"""Conversation session engine for the embeddable support chat widget."""

__version__ = "0.1.0"
