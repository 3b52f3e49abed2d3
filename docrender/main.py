"""Application entry point for the document rendering API server."""

import uvicorn

from docrender.api.app import app
from docrender.utils.logger import setup_logging


def main() -> None:
    """Start the FastAPI application server."""
    config = app.state.config
    setup_logging(config.log_level)
    uvicorn.run(app, host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
