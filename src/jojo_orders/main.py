"""Give Back Jojo Orders - Main Entry Point."""

import os

from jojo_orders.server.app import create_app

# Create FastAPI application
app = create_app()

if __name__ == "__main__":
    import uvicorn

    reload = os.getenv("RELOAD", "false").lower() == "true"

    uvicorn.run(
        "jojo_orders.main:app",
        host=app.state.settings.host,
        port=app.state.settings.port,
        reload=reload,
        log_level=app.state.settings.log_level.lower(),
        timeout_graceful_shutdown=60,  # Matches the function-invocation deadline
        timeout_keep_alive=5,
        access_log=False,  # Structured logging covers requests
    )
