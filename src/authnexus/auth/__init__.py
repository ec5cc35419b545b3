"""
authnexus.auth

Authentication package.

Responsibilities:
- Token codec primitives (sign, validate, client-side claim peek).
- Password hashing.
- FastAPI auth dependencies (Principal + role checks).
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Nothing in this package touches the database; stateful refresh-token checks live in
# `authnexus.services.token_issuer`.
