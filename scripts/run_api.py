#!/usr/bin/env python
"""
Start the Convention Pricing API with uvicorn.

Host, port and auto-reload come from Settings
(CONVENTION_PRICING_HOST, CONVENTION_PRICING_PORT, CONVENTION_PRICING_RELOAD).

Usage:
    python scripts/run_api.py [--host HOST] [--port PORT] [--reload]
"""
import argparse
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

import uvicorn

from convention_pricing.config.settings import get_settings

APP = "convention_pricing.api.main:app"


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Run the Convention Pricing API")
    parser.add_argument("--host", default=settings.api_host)
    parser.add_argument("--port", type=int, default=settings.api_port)
    parser.add_argument("--reload", action="store_true", default=settings.api_reload)
    args = parser.parse_args()

    print(f"Convention Pricing API on http://{args.host}:{args.port}")
    print(f"  Data directory: {settings.data_dir}")
    print(f"  Default currency: {settings.default_currency}")

    uvicorn.run(
        APP,
        host=args.host,
        port=args.port,
        reload=args.reload,
        reload_dirs=[str(src_path)] if args.reload else None,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
