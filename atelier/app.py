import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from atelier.application import Engine, build_engine, configure_engine, get_engine
from atelier.core.settings import Settings
from atelier.routes import designs, enrichment, projects


def create_app(settings: Settings | None = None, engine: Engine | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure_engine(engine or build_engine(settings))

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        await get_engine().shutdown()

    app = FastAPI(title="Atelier Design Engine API", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(projects.router, prefix="/api")
    app.include_router(enrichment.router, prefix="/api")
    app.include_router(designs.router, prefix="/api")
    app.include_router(designs.names_router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Atelier Design Engine API",
                "docs": "/docs",
            }
        )

    return app


app = create_app()
