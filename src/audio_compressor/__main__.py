import uvicorn

from .logging_setup import setup_logging
from .settings import settings


def main() -> None:
    setup_logging(settings.logging)
    uvicorn.run(
        "audio_compressor.app:app",
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.logging.level.lower(),
        reload=settings.server.reload,
    )


if __name__ == "__main__":
    main()
