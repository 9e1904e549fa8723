import uvicorn

from .core.config import get_settings


def main():
    settings = get_settings()
    uvicorn.run(
        "task_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    main()
