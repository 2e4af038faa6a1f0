"""Catalog-grounded phone shopping assistant."""
