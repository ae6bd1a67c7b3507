#!/usr/bin/env python3
"""
Start the gatekeeper webhook server
"""

import os

import uvicorn

from logging_config import setup_logging


def start_server():
    """Run uvicorn in-process so the console logging set up here applies"""
    setup_logging()

    print("🚀 Starting Community Gatekeeper...")
    print("📨 Waiting for gateway webhooks on /webhooks/group-join and /webhooks/message")
    print("-" * 50)

    try:
        uvicorn.run(
            "gatekeeper.main:app",
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            log_config=None,
            access_log=False,
        )
    except KeyboardInterrupt:
        print("\n🛑 Gatekeeper stopped")


if __name__ == "__main__":
    start_server()
