#!/usr/bin/env python3
"""
Starts the SignFlow Admin API with uvicorn.
"""

from __future__ import annotations

import argparse
from pathlib import Path

import uvicorn

ROOT_DIR = Path(__file__).parent.resolve()
BACKEND_DIR = ROOT_DIR / "backend"


def parse_args() -> argparse.Namespace:
    from app.core.config import settings

    parser = argparse.ArgumentParser(description="Run the SignFlow Admin API")
    parser.add_argument("--host", default=settings.server_host)
    parser.add_argument("--port", type=int, default=settings.server_port)
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    print(f"[>] SignFlow Admin API on http://{args.host}:{args.port}")
    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        app_dir=str(BACKEND_DIR),
    )


if __name__ == "__main__":
    main()
