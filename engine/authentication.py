"""
Token authentication for the API.

Tokens are issued elsewhere (admin, ``seed_demo`` or an identity
service); the engine only resolves ``Authorization: Token <key>`` to the
calling user.  Kept in its own module so settings can reference it
without importing any views.
"""
from __future__ import annotations

from rest_framework import authentication, exceptions


class TokenAuthentication(authentication.TokenAuthentication):
    """DRF token authentication that also refuses role-less accounts."""

    keyword = 'Token'

    def authenticate_credentials(self, key):
        user, token = super().authenticate_credentials(key)
        if not getattr(user, 'role', None):
            raise exceptions.AuthenticationFailed('account has no role assigned')
        return user, token
