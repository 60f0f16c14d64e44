"""Catalog, curation, cache and geo services.

Submodules are imported directly; the storage gateway depends on the record
types defined here, so this package does not re-export them.
"""
