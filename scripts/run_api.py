#!/usr/bin/env python3
"""Run the prediction swarm API server.

Usage:
    python scripts/run_api.py [--host HOST] [--port PORT] [--reload]

Environment:
    DATABASE_URL - Optional. PostgreSQL connection string (in-memory stores when unset).
    REDIS_URL - Optional. Redis result cache (in-memory cache when unset).
    ANTHROPIC_API_KEY, OPENAI_API_KEY, GOOGLE_AI_API_KEY, XAI_API_KEY,
    GROQ_API_KEY, PERPLEXITY_API_KEY - Provider credentials; agents without
    one answer with a degraded analysis.

Examples:
    python scripts/run_api.py
    python scripts/run_api.py --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

import uvicorn

# Ensure imports work when invoked as a script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


def main() -> int:
    """Run the API server."""
    parser = argparse.ArgumentParser(description="Run the prediction swarm API server.")
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if not os.environ.get("DATABASE_URL"):
        print("Warning: DATABASE_URL is not set; predictions and the leaderboard will not persist", file=sys.stderr)

    print(f"Starting FastAPI server on {args.host}:{args.port}")
    print("Endpoints:")
    print(f"  - POST http://{args.host}:{args.port}/api/swarm/analyze")
    print(f"  - GET  http://{args.host}:{args.port}/api/swarm/stream")
    print(f"  - GET  http://{args.host}:{args.port}/api/swarm/leaderboard")
    print(f"  - GET  http://{args.host}:{args.port}/health")
    print()

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
