"""Paginated chapter download pipeline."""
