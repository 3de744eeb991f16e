"""IC card reader API routes.

Endpoints para conectar el lector y controlar la lectura de tarjetas.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from api.dependencies import get_reader_service
from services.reader_service import ReaderService


router = APIRouter()


class InitializeRequest(BaseModel):
    """Request para inicializar el lector."""
    device_path: Optional[str] = Field(None, description="Ruta a probar primero")
    auto: bool = Field(False, description="Usar el lector IC preferido")


class ReaderStatusResponse(BaseModel):
    """Estado del lector."""
    connected: bool
    devicePath: Optional[str] = None
    readerType: str
    state: str
    firmwareVersion: Optional[str] = None


class CommandResponse(BaseModel):
    """Resultado de un comando del lector."""
    success: bool
    message: str
    code: Optional[int] = None


@router.post("/initialize", response_model=dict)
async def initialize_reader(
    request: InitializeRequest,
    reader_service: ReaderService = Depends(get_reader_service)
) -> Dict[str, Any]:
    """Conecta con el lector de tarjetas IC."""
    result = await reader_service.initialize_reader(request.device_path, request.auto)
    if not result["success"]:
        raise HTTPException(status_code=503, detail=result["error"] or result["message"])
    return result


@router.post("/read", response_model=CommandResponse)
async def read_card(
    reader_service: ReaderService = Depends(get_reader_service)
) -> CommandResponse:
    """Solicita una lectura única de tarjeta."""
    return _checked(await reader_service.read_card())


@router.post("/start", response_model=CommandResponse)
async def start_reading(
    reader_service: ReaderService = Depends(get_reader_service)
) -> CommandResponse:
    """Inicia la lectura continua."""
    return _checked(await reader_service.start_reading())


@router.post("/stop", response_model=CommandResponse)
async def stop_reading(
    reader_service: ReaderService = Depends(get_reader_service)
) -> CommandResponse:
    """Detiene la lectura continua."""
    return CommandResponse(**await reader_service.stop_reading())


@router.post("/disconnect", response_model=CommandResponse)
async def disconnect_reader(
    reader_service: ReaderService = Depends(get_reader_service)
) -> CommandResponse:
    """Desconecta el lector."""
    return CommandResponse(**await reader_service.disconnect_reader())


@router.post("/beep", response_model=CommandResponse)
async def beep(
    reader_service: ReaderService = Depends(get_reader_service)
) -> CommandResponse:
    """Hace sonar el lector."""
    return _checked(await reader_service.beep())


@router.get("/status", response_model=ReaderStatusResponse)
async def get_status(
    reader_service: ReaderService = Depends(get_reader_service)
) -> ReaderStatusResponse:
    """Obtiene el estado del lector."""
    return ReaderStatusResponse(**await reader_service.get_status())


@router.get("/events", response_model=List[dict])
async def recent_events(
    limit: int = Query(50, ge=1, le=1000),
    reader_service: ReaderService = Depends(get_reader_service)
) -> List[Dict[str, Any]]:
    """Últimas lecturas de tarjeta aceptadas."""
    return reader_service.recent_events()[-limit:]


def _checked(result: Dict[str, Any]) -> CommandResponse:
    # El lector no inicializado se reporta como conflicto de estado
    if not result["success"]:
        raise HTTPException(status_code=409, detail=result["message"])
    return CommandResponse(**result)
