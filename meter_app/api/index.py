"""
Render entry point for the Water Meter Readings API
"""
import os

from meter_app.main import app

# Export the FastAPI app for Render
handler = app

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", 8000)))
