#!/usr/bin/env python
"""
Serve the jobrunner HTTP API (cron, jobs and health routes) with uvicorn.

Jobs can also be driven without the server through the `jobrunner` CLI,
e.g. `jobrunner process` from a system crontab.
"""
import os
import uvicorn

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    reload = os.environ.get("UVICORN_RELOAD", "false").lower() == "true"

    print(f"Starting jobrunner API on port {port}")

    uvicorn.run(
        "jobrunner.main:app",
        host="0.0.0.0",
        port=port,
        reload=reload,
        log_level=os.environ.get("LOG_LEVEL", "info").lower(),
    )
