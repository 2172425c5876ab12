"""Main entry point for the chat sync service."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from chatsync.api import create_fastapi_app
from chatsync.api.routes import control
from chatsync.logging_config import setup_logging
from sim import Sim


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    setup_logging()

    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8000"))

    # Attached to the loopback server on startup
    control.set_sim_instance(Sim())

    app = create_fastapi_app()

    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
