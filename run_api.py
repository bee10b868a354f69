#!/usr/bin/env python3
"""
Script to run the Bookstore API server.
"""

import sys
from pathlib import Path

import uvicorn

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from api.config import config
from utilities.config import config as store_config


def main():
    """Run the API server."""
    print("Starting Bookstore API Server")
    print(f"Host: {config.host}")
    print(f"Port: {config.port}")
    print(f"Debug: {store_config.debug}")
    print(f"Database: {store_config.mongodb_database}")
    print(f"Uploads: {store_config.get_upload_root()}")
    print("=" * 50)

    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=store_config.debug,
        log_level=config.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
