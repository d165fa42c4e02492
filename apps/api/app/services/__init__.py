"""Service layer modules.

Import service modules (not individual functions), e.g.
``from app.services import membership_service``.
"""
