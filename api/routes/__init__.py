"""API Routes package.

Centraliza todos los routers de la API bajo el prefijo /api/v1/.
"""

from fastapi import APIRouter, FastAPI
from . import hardware_routes, reader_routes


def register_routes(app: FastAPI) -> None:
    """Registra todas las rutas de la API con el prefijo /api/v1/.

    Args:
        app: Instancia de FastAPI donde registrar las rutas
    """
    # Router principal para v1
    v1_router = APIRouter(prefix="/api/v1", tags=["API v1"])

    v1_router.include_router(
        hardware_routes.router,
        prefix="/hardware",
        tags=["Hardware"]
    )

    v1_router.include_router(
        reader_routes.router,
        prefix="/reader",
        tags=["Reader"]
    )

    app.include_router(v1_router)

    # Rutas especiales que no van bajo /api/v1/
    @app.get("/", tags=["Root"])
    async def root():
        """Endpoint raíz."""
        return {"message": "IC Reader Bridge API", "version": "1.0", "docs": "/docs"}

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "icreader-bridge"}
