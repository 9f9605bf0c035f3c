"""Outreach Flow: main entry point."""

import logging

import uvicorn

from outreach_flow.config import settings


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info("API: http://%s:%s", settings.api_host, settings.api_port)
    uvicorn.run(
        "outreach_flow.web.app:app",
        host=settings.api_host,
        port=settings.api_port,
    )


if __name__ == "__main__":
    main()
