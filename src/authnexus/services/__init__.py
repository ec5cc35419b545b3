"""
authnexus.services

Service layer.

Responsibilities:
- Own transaction boundaries around repository calls.
- Encapsulate the token issuer's credential, minting and rotation policy.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Routers construct one service per request with the request-scoped DB session.
