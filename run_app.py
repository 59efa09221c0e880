#!/usr/bin/env python3
"""
Storefront Backend Runner
=========================

Usage:
    python run_app.py                    # Development server with auto-reload
    python run_app.py --mode prod        # Production mode, several workers
    python run_app.py --init-db          # Create tables, then serve
    python run_app.py --port 8001        # Custom port
"""

import argparse
import asyncio
import sys

def init_database():
    """Create all tables for a fresh database"""
    from storefront.core.database import init_db, close_db

    async def _init():
        await init_db()
        await close_db()

    asyncio.run(_init())
    print("✅ Database tables created")

def run_server(host: str, port: int, reload: bool, workers: int):
    import uvicorn

    print(f"\n🚀 Starting Storefront API on {host}:{port}")
    print(f"📖 API Docs: http://{host}:{port}/api/docs")
    print("\n" + "=" * 50)

    uvicorn.run(
        "storefront.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=None if reload else workers,
        log_level="info"
    )

def main():
    from storefront.core.config import settings

    parser = argparse.ArgumentParser(
        description="Storefront Backend Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--mode",
        choices=["dev", "prod"],
        default="dev",
        help="Server mode (default: dev)"
    )
    parser.add_argument("--host", default=settings.HOST, help="Host to bind to")
    parser.add_argument("--port", type=int, default=settings.PORT, help="Port to bind to")
    parser.add_argument("--init-db", action="store_true", help="Create tables before serving")
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload")

    args = parser.parse_args()

    if args.init_db:
        init_database()

    reload = not args.no_reload and args.mode != "prod"
    workers = settings.WORKERS if args.mode == "prod" else 1
    run_server(args.host, args.port, reload, workers)
    return 0

if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n👋 Server stopped by user")
        sys.exit(0)
