"""Server entrypoint: ``python -m todo_service`` or the ``todo-service`` script."""

from __future__ import annotations

import uvicorn

from todo_service.core.settings import get_settings


def main() -> None:
    """Run uvicorn with the application factory."""
    settings = get_settings()
    uvicorn.run(
        "todo_service.app.main:create_app",
        factory=True,
        host=settings.app.host,
        port=settings.app.port,
        # Logging is configured by the app itself
        log_config=None,
        timeout_graceful_shutdown=int(settings.otel.shutdown_timeout),
    )


if __name__ == "__main__":
    main()
