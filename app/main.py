from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.deps import get_engine
from app.api.routes import inbox
from app.core.config import settings
from app.db.session import init_db
from app.utils.audit_logger import audit_logger

VERSION = "1.0.0"

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(inbox.router, prefix=f"{settings.API_V1_PREFIX}/inbox", tags=["Inbox"])


@app.on_event("startup")
def startup_event():
    """Create database tables on application startup"""
    init_db(get_engine())

    audit_logger.log(
        action="application_startup",
        resource_type="application",
        status="success",
        details={"accounts": sorted(settings.MAILBOXES)},
    )


@app.on_event("shutdown")
def shutdown_event():
    """Release pooled database connections on application shutdown"""
    get_engine().dispose()

    audit_logger.log(
        action="application_shutdown",
        resource_type="application",
        status="success"
    )


@app.get("/", tags=["Health"])
def health_check():
    """Basic health check endpoint"""
    return {"status": "ok", "version": VERSION}
