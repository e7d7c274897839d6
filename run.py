#!/usr/bin/env python3
"""
Run script for the HealthFlow API server.

Usage:
    python run.py

Or with custom settings:
    HOST=127.0.0.1 PORT=8080 python run.py

ENDPOINT_ID, ENDPOINT_API_KEY and ARK_BASE_URL must be set (environment
or local.env); the server refuses to start without them.
"""

import uvicorn
import os


def main():
    """Run the FastAPI application."""
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    reload = os.getenv("RELOAD", "false").lower() == "true"

    print(f"""
    HealthFlow
    Server:    http://{host}:{port}
    API Docs:  http://{host}:{port}/docs
    Graph ID:  health-assistant
    """)

    uvicorn.run(
        "healthflow.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
