"""Run the Incident Service with uvicorn: `python -m incident_service`."""

import uvicorn

from .core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "incident_service.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
