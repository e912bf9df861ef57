"""
Audit service startup script.

Usage:
    python run.py
    python run.py --reload
    python run.py --port 8080

The port defaults to SERVER_PORT (8083).
"""

import argparse

import uvicorn

from audit_service.config import settings


def main() -> None:
    """Start the FastAPI application."""
    parser = argparse.ArgumentParser(description="Run the audit service")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=settings.server_port, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()

    uvicorn.run(
        "audit_service.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        loop="asyncio",
    )


if __name__ == "__main__":
    main()
