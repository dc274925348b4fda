from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, Mapping, Optional

from backend import database
from backend.gateway import SqliteGateway
from backend.rest import DEFAULT_API_URL, RestGateway

BackendKind = Literal["local", "rest"]


@dataclass(frozen=True)
class Settings:
    """
    Start-up configuration, read from the environment.

      - STOREFRONT_BACKEND: "local" (bundled sqlite store) or "rest"
      - STOREFRONT_API_URL: base url of the REST API
      - STOREFRONT_DB_PATH: sqlite file for the local store
      - STOREFRONT_HTTP_TIMEOUT: seconds before a REST call gives up
      - DEBUG: any non-empty value turns on debug logging
    """

    backend: BackendKind = "local"
    api_url: str = DEFAULT_API_URL
    db_path: str = "data/db.sqlite"
    http_timeout: float = 10.0
    debug: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Settings:
        env = os.environ if environ is None else environ

        backend = env.get("STOREFRONT_BACKEND", "local").strip().lower()
        if backend not in ("local", "rest"):
            raise ValueError(
                f"STOREFRONT_BACKEND must be 'local' or 'rest', got {backend!r}"
            )

        raw_timeout = env.get("STOREFRONT_HTTP_TIMEOUT", "10")
        try:
            http_timeout = float(raw_timeout)
        except ValueError:
            raise ValueError(
                f"STOREFRONT_HTTP_TIMEOUT must be a number, got {raw_timeout!r}"
            ) from None
        if http_timeout <= 0:
            raise ValueError("STOREFRONT_HTTP_TIMEOUT must be positive")

        return cls(
            backend=backend,
            api_url=env.get("STOREFRONT_API_URL", DEFAULT_API_URL),
            db_path=env.get("STOREFRONT_DB_PATH", "data/db.sqlite"),
            http_timeout=http_timeout,
            debug=bool(env.get("DEBUG")),
        )


def make_gateway(settings: Settings):
    """Build the BackendGateway selected by ``settings``."""
    if settings.backend == "rest":
        return RestGateway(settings.api_url, timeout=settings.http_timeout)

    database.DB_PATH = settings.db_path
    return SqliteGateway()
