"""
Entry point for running the supervisor via `python -m cli_supervisor`.

Starts the FastAPI host with uvicorn.
"""

import uvicorn

from .config import config


def main():
    """Run the supervisor host."""
    uvicorn.run(
        "cli_supervisor.main:app",
        host=config.host,
        port=config.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
