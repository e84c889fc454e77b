"""Spiders for chapter downloads."""
