import uvicorn

from laundryflow.core.config import get_settings


def main():
    settings = get_settings()
    uvicorn.run(
        "laundryflow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
