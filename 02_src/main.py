"""Main entry point for the HealWatch dashboard service."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from healwatch.api import create_fastapi_app
from healwatch.config import DashboardConfig
from healwatch.logging_config import setup_logging
from healwatch.session import DashboardSession


def main():
    """Run the dashboard service."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    setup_logging()

    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8090"))

    # One session for the whole process; sim mode swaps in the scripted broker
    session = DashboardSession.from_config(DashboardConfig.from_env())
    app = create_fastapi_app(session)

    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
