"""Run the API with ``python -m partyhub``."""
from __future__ import annotations

import os

import uvicorn

from partyhub.core.logger import init_logging

if __name__ == "__main__":
    init_logging(app_name="partyhub", level=os.getenv("LOG_LEVEL", "INFO"))
    uvicorn.run(
        "partyhub.main:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
