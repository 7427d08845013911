"""
API server for the export requirements registry.

Run with `python main.py` or `uvicorn main:asgi_app`.
"""

import uvicorn

from phytoreq.app import create_app
from phytoreq.config import get
from phytoreq.logging_config import configure_logging, get_logger

# Initialize centralized logging
LOG_LEVEL = get("app", "log_level").upper()
configure_logging(log_level=LOG_LEVEL, service=get("app", "service_name"))
logger = get_logger("phytoreq")

app = create_app()

# Alias for the uvicorn command
asgi_app = app

if __name__ == "__main__":
    HOT_RELOAD = get("app", "hot_reload")
    logger.info(f"Starting app with hot reload: {HOT_RELOAD}")
    uvicorn.run(
        "main:asgi_app",
        host=get("app", "host"),
        port=get("app", "port"),
        reload=HOT_RELOAD,
    )
