"""Bundled game data."""
