"""
Delivery Matching & Lifecycle Engine
====================================
Entry point. Run with: uvicorn main:app --reload
"""

import uvicorn

from delivery_engine.api.app import create_app
from delivery_engine.config import settings

app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.api_host, port=settings.api_port, reload=True)
