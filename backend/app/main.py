"""HomeDesk - Tenant Maintenance Assistant API"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.core.config import get_settings
from app.core.logging import configure_logging, logger
from app.routers import chat, directory, knowledge, work_orders


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)
    logger.info(
        "HomeDesk API starting",
        version="0.1.0",
        llm_model=settings.llm_model,
        data_dir=settings.data_dir,
    )
    yield
    logger.info("HomeDesk API shutting down")


app = FastAPI(
    title="HomeDesk API",
    description="Maintenance assistant for tenants - self-help, duplicate-aware dispatch, and work orders",
    version="0.1.0",
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat.router)
app.include_router(directory.router)
app.include_router(knowledge.router)
app.include_router(work_orders.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "HomeDesk API",
        "version": "0.1.0",
        "description": "Tenant Maintenance Assistant",
        "endpoints": {
            "chat": "/chat",
            "tenants": "/tenants",
            "contractors": "/contractors",
            "knowledge": "/knowledge",
            "work_orders": "/work-orders",
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
