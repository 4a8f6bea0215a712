"""Run the CPB AI HTTP API: ``python -m cpb_ai``."""  # pragma: no cover

from __future__ import annotations  # pragma: no cover

import uvicorn  # pragma: no cover

from cpb_ai.api.app import create_app  # pragma: no cover
from cpb_ai.settings import EngineSettings  # pragma: no cover


def main() -> None:  # pragma: no cover
    """Entry-point for the API server."""
    settings = EngineSettings()
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":  # pragma: no cover
    main()
