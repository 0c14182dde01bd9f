"""
asgi.py -- Application assembly for the garage manager.

This is the ONLY file that imports from both api/ and web/. It joins the two
independent layers into a single ASGI app without coupling them to each other.
api/main.py knows nothing about web/; web/routes.py knows nothing about api/.

Run with:  uvicorn asgi:app --reload
           python asgi.py            (binds 0.0.0.0:$PORT)
"""

from api.main import app
from core.config import get_settings
from web.routes import router as web_router

# The SPA router is a catch-all, so it must be registered after every API route.
app.include_router(web_router, tags=["Web UI"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
