"""Run the API with uvicorn: ``python -m movie_catalog``."""

import uvicorn

from movie_catalog.core.config import settings


def main() -> None:
    uvicorn.run(
        "movie_catalog.main:app",
        host="0.0.0.0",
        port=settings.app.port,
        log_config=None,
        timeout_keep_alive=60,
    )


if __name__ == "__main__":
    main()
