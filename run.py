"""
Application Entry Point
"""
import uvicorn
from fyndak.core.config import get_settings

settings = get_settings()

if __name__ == "__main__":
    uvicorn.run(
        "fyndak.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
