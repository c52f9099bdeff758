"""
Companion Backend
=================

Creator subscription and booking platform.

Layers:
    routes/     HTTP concerns only: parse input, call a service, return a schema
    services/   business rules, Stripe/S3/Postmark integrations
    models/     SQLAlchemy ORM tables
    schemas/    pydantic request and response contracts
    database    async engine and the per-request session dependency
"""

__version__ = "1.0.0"
