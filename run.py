"""Run the CLI supervisor host."""

import uvicorn

from cli_supervisor.config import config

if __name__ == "__main__":
    uvicorn.run(
        "cli_supervisor.main:app",
        host=config.host,
        port=config.port,
        reload=False,
    )
