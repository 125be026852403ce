from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exception_handlers import http_exception_handler, request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
import logging

from instaplus.core.config import settings
from instaplus.core.storage import media_storage
from instaplus.db.init_db import create_all_tables
from instaplus.middleware.request_logging import RequestLoggingMiddleware
from instaplus.middleware.auth_logging import AuthLoggingMiddleware
from instaplus.modules.users.api.router import router as users_router
from instaplus.modules.posts.api.router import router as posts_router
from instaplus.modules.messages.api.router import router as messages_router
from instaplus.modules.stories.api.router import router as stories_router
from instaplus.modules.media.router import router as upload_router, media_router
from instaplus.modules.realtime.router import router as realtime_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("instaplus")

# Initialize the FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    exception_handlers={
        RequestValidationError: request_validation_exception_handler,
        HTTPException: http_exception_handler,
    },
    debug=settings.DEBUG,
    description="Posts, stories and direct messages with realtime delivery",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting server in {settings.ENVIRONMENT} mode")
    logger.info(f"BASE_URL: {settings.BASE_URL}")

    create_all_tables()
    media_storage.check_bucket()

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(AuthLoggingMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Register API routers
app.include_router(users_router, prefix="/users", tags=["users"])
app.include_router(posts_router, prefix="/posts", tags=["posts"])
app.include_router(messages_router, prefix="/messages", tags=["messages"])
app.include_router(stories_router, prefix="/stories", tags=["stories"])
app.include_router(upload_router, prefix="/upload", tags=["upload"])
app.include_router(media_router, prefix="/media", tags=["media"])
app.include_router(realtime_router, tags=["realtime"])

@app.get("/health")
def health_check():
    return {"status": "ok"}

@app.get("/")
async def root():
    return {
        "message": "Welcome to Instaplus",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "documentation": "/docs" if settings.DEBUG else None,
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("instaplus.main:app", host="0.0.0.0", port=5001, reload=True)
