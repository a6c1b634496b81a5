"""
Stytch B2B client wrapper.

Provides a singleton client instance configured from Django settings.
Every identity-provider call (session checks, organization and member
writes, invitation delivery) goes through it, so tests patch
``get_stytch_client`` where it is imported.
"""

from functools import lru_cache

import stytch
from django.conf import settings


@lru_cache(maxsize=1)
def get_stytch_client() -> stytch.B2BClient:
    """Get configured Stytch B2B client (singleton)."""
    return stytch.B2BClient(
        project_id=settings.STYTCH_PROJECT_ID,
        secret=settings.STYTCH_SECRET,
    )
