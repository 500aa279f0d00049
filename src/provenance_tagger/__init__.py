"""Provenance tagger - stamps Azure resources with creator and last-modifier tags."""

__version__ = "0.1.0"
