"""Main entry point for running the FastAPI application."""
import uvicorn

from be.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    print(f"Starting {settings.app_name} v{settings.version}")
    print(f"Debug mode: {settings.debug}")
    print(f"Database: {settings.db.url.split('@')[-1] if '@' in settings.db.url else 'SQLite'}")
    print(f"Extraction service: {settings.extraction.url} ({settings.extraction.version})")
    print("-" * 50)

    uvicorn.run(
        "be.api:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        reload_dirs=["be", "ai"] if settings.debug else None,
        log_level=settings.logging.level.lower(),
    )
