"""
authnexus.api.__main__

Entrypoint for running the issuer via `python -m authnexus.api`.
"""

from __future__ import annotations

import uvicorn

from authnexus.api.app import create_app
from authnexus.settings import Settings, get_settings

DEFAULT_SECRET = Settings.model_fields["jwt_secret"].default


def main() -> None:
    settings = get_settings()
    if settings.env == "prod" and settings.jwt_secret == DEFAULT_SECRET:
        raise SystemExit("AUTHNEXUS_JWT_SECRET must be set in prod")

    app = create_app(settings=settings)
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()
