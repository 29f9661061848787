from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import logging

from .api.v1.endpoints import qc
from .config import AppConfig, get_config
from .constants import INITIAL_QC_CONFIGS
from .database import create_db_engine, create_session_factory, init_db
from .qc.service import QCService
from .repositories import AnalyteRepository, SqlAlchemyAnalyteRepository

logger = logging.getLogger(__name__)

DESCRIPTION = "Laboratory quality control tracking with Westgard multi-rule evaluation"

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up labguard-qc...")
    yield
    logger.info("Shutting down labguard-qc...")

def build_repository(config: AppConfig) -> AnalyteRepository:
    engine = create_db_engine(config.database)
    init_db(engine)
    return SqlAlchemyAnalyteRepository(create_session_factory(engine))

def create_app(config: Optional[AppConfig] = None,
               repository: Optional[AnalyteRepository] = None) -> FastAPI:
    """Build the application; the repository is resolved once, here"""
    config = config or get_config()

    # Configure logging
    logging.basicConfig(level=getattr(logging, config.logging.level))

    app = FastAPI(
        title="labguard-qc",
        description=DESCRIPTION,
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    service = QCService(repository or build_repository(config))
    if config.seed_default_analytes:
        service.seed(INITIAL_QC_CONFIGS)

    app.state.config = config
    app.state.qc_service = service
    app.include_router(qc.router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {
            "project": "labguard-qc",
            "status": "operational",
            "description": DESCRIPTION
        }

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    @app.get("/api/v1/status")
    async def api_status():
        return {
            "api_version": "v1",
            "status": "operational",
            "endpoints_available": True
        }

    return app

def run() -> None:
    import uvicorn

    config = get_config()
    uvicorn.run(create_app(config), host=config.api.host, port=config.api.port)

if __name__ == "__main__":
    run()
