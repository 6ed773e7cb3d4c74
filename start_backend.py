#!/usr/bin/env python3
"""
Startup script for the bteditor backend API server.
"""
import os
import sys

import uvicorn

# Add current directory to Python path to ensure bteditor modules can be imported
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

if __name__ == "__main__":
    uvicorn.run(
        "bteditor_backend.api:app",
        host=os.environ.get("BTEDITOR_HOST", "127.0.0.1"),
        port=int(os.environ.get("BTEDITOR_PORT", "8000")),
        reload=True,
        log_level="info"
    )
