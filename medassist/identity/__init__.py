"""
Session-token validation for a hosted identity provider.

This package has no dependency on other medassist packages.
Build one JwtTokenValidator at startup and call validate_and_extract()
with the bearer token string to get a TokenContext.
"""

from .config import JwtConfig
from .context import TokenContext
from .validator import JwtTokenValidator, TokenValidationError

__all__ = [
    "JwtConfig",
    "JwtTokenValidator",
    "TokenContext",
    "TokenValidationError",
]
