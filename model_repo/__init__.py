"""Versioned model repository service."""
