"""Main entry point for running the FastAPI application with auto-reload."""
import uvicorn

from catalog.api import app
from catalog.config import settings

if __name__ == "__main__":
    print(f"Starting {settings.app_name} v{settings.version}")
    print(f"Debug mode: {settings.debug}")
    print(f"Database: {settings.db.url.split('@')[-1] if '@' in settings.db.url else 'SQLite'}")
    print(f"Upload directory: {settings.uploads.directory}")
    print("-" * 50)

    uvicorn.run(
        "catalog.api:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        reload_dirs=["catalog"] if settings.debug else None,
        log_level=settings.logging.level.lower(),
    )
