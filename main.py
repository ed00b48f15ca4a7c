#!/usr/bin/env python3
"""
Entry point for the comparison service
"""
import uvicorn
from facecompare import config

if __name__ == "__main__":
    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=config.PORT,
        log_level=config.LOG_LEVEL.lower()
    )
