"""Storefront backend: catalog, checkout and payment reconciliation."""
