"""
authnexus.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide the principal ORM model, engine/session setup, and repositories.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The issuer is the only writer of token-related columns; nothing else imports the
# repository for those fields.
