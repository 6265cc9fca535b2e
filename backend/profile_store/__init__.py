"""
profile_store - MongoDB bootstrap for the user-profile store.

Reconciles a live database against a declarative manifest of collections,
validators, indexes and seed documents.
"""

__version__ = "0.1.0"
