#!/usr/bin/env python
"""Run the storefront API under uvicorn."""
import os

import uvicorn

from storefront.core.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    port = int(os.environ.get("PORT", 8000))

    print(f"Starting {settings.STORE_NAME} ({settings.ENVIRONMENT}) on port {port}")

    uvicorn.run(
        "storefront.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=port,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
