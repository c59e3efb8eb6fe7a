#!/usr/bin/env python
"""
Start the pricing API with uvicorn.

Bind address comes from settings (ERP_PRICING_HOST / ERP_PRICING_PORT);
command-line flags override it.

Usage:
    python scripts/run_api.py
    python scripts/run_api.py --port 9000 --reload
"""
import argparse
import sys
from pathlib import Path

import uvicorn

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from erp_pricing.config.settings import get_settings


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Run the ERP pricing API")
    parser.add_argument("--host", default=settings.api_host)
    parser.add_argument("--port", type=int, default=settings.api_port)
    parser.add_argument("--reload", action="store_true", help="Restart on source changes")
    args = parser.parse_args()

    print(f"Starting ERP Pricing API on {args.host}:{args.port} (data: {settings.data_dir})")
    uvicorn.run(
        "erp_pricing.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        reload_dirs=[str(src_path)] if args.reload else None,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
