#!/usr/bin/env python3
"""
Vascular Risk Screening Service — Main Entry Point
====================================================
Launches the FastAPI backend with Uvicorn.
Run with:  python main.py

⚠️  DISCLAIMER: ePWV values and retinal stroke-risk scores are ESTIMATES
    intended to support screening.  They are NOT a diagnosis.  Clinical
    decisions must be confirmed by a qualified healthcare professional.
"""

import uvicorn

from api.app import create_app
from config import API_HOST, API_PORT, LOG_LEVEL

if __name__ == "__main__":
    app = create_app()
    uvicorn.run(
        app,
        host=API_HOST,
        port=API_PORT,
        reload=False,
        log_level=LOG_LEVEL.lower(),
    )
