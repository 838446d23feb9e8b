"""Run the relay server under uvicorn.

    livechat-relay

Or from the backend directory:
    python -m livechat.server
"""

import uvicorn

from livechat.config import settings


def main() -> None:
    """Serve the FastAPI app on the configured host and port."""
    uvicorn.run(
        "livechat.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
