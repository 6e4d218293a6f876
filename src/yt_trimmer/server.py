from __future__ import annotations

import uvicorn

from .api.app import create_app
from .config import create_directories, get_settings
from .logging_config import setup_logging


def main() -> None:
    settings = get_settings()
    setup_logging(settings)
    create_directories(settings)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
