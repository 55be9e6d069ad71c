"""Core module - vendor-neutral building blocks of the sync engine.

This module contains tenant configuration models, engine settings,
schema-driven mapping and correlated logging. It is intentionally
vendor-agnostic.

ERP- and WMS-specific payload shapes belong in /payloads/.
"""

__version__ = "1.0.0"
