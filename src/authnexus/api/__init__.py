"""
authnexus.api

API package for the AuthNexus issuer.

Responsibilities:
- FastAPI app factory and router modules.
- API-layer dependency wiring, schemas and error rendering.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Routers never touch token columns directly; every mutation goes through `TokenIssuer`.
