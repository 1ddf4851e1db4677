"""Process entry point"""

import uvicorn

from forpharma.config import get_settings


def main():
    """Run the API under uvicorn; lifespan failures abort startup"""
    settings = get_settings()
    uvicorn.run(
        "forpharma.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        lifespan="on",
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
