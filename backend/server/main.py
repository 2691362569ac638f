"""
Development entry point.

Runs the ASGI app with uvicorn. Configuration comes from the environment
(and a .env file, loaded by server.asgi).
"""

from __future__ import annotations

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "server.asgi:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        log_level="info",
        reload=os.environ.get("ENV", "dev") == "dev",
    )


if __name__ == "__main__":
    main()
