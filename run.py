#!/usr/bin/env python3
"""
Simple run script for the FlowCanvas API.

Usage:
    python run.py

Or with custom settings:
    HOST=127.0.0.1 PORT=8080 STORAGE_DIR=./data python run.py
"""

import uvicorn

from flowcanvas.config import settings


def main():
    """Run the FastAPI application."""
    host = settings.HOST
    port = settings.PORT

    print(f"""
FlowCanvas v{settings.APP_VERSION}
  Server:    http://{host}:{port}
  API Docs:  http://{host}:{port}/docs
  Storage:   {settings.STORAGE_DIR or "in-memory"}
    """)

    uvicorn.run(
        "flowcanvas.main:app",
        host=host,
        port=port,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
