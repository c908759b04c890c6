"""
Entry point for the Household Budget API server.

Starts uvicorn with the app built from settings; the daily billing
scheduler runs inside the app lifespan.

Usage:
    python -m app.main
"""

import logging
import os

import uvicorn

from household_budget.api import create_app
from household_budget.config import validate_all_settings

logging.basicConfig(level=logging.INFO)

for name, error in validate_all_settings().items():
    if name.endswith("_error"):
        logging.getLogger(__name__).warning("Invalid %s settings: %s", name[:-6], error)

app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
