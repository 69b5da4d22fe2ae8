#!/usr/bin/env python3
"""Start the API server."""
import logging

import uvicorn

from config import Config

if __name__ == "__main__":
    config = Config.from_env()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "api.app:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level=config.log_level.lower()
    )
