#!/usr/bin/env python3
"""
pagesmith - Quick Start Script

Run this script to start the pagesmith server.
"""
import sys
import os

# Add the project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

if __name__ == "__main__":
    import uvicorn
    from pagesmith.config import get_settings

    settings = get_settings()
    display_host = "localhost" if settings.host == "0.0.0.0" else settings.host

    print("=" * 50)
    print("✨ pagesmith")
    print("=" * 50)
    print(f"Server starting at http://{display_host}:{settings.port}")
    print(f"AI: {settings.ai_backend} / {settings.ai_model}")
    print("=" * 50)

    uvicorn.run(
        "pagesmith.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
