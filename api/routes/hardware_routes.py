"""Hardware detection API routes.

Endpoints para descubrir las capacidades de lectura del host.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from api.dependencies import get_reader_service
from services.reader_service import ReaderService


router = APIRouter()


class HardwareInfoResponse(BaseModel):
    """Capacidad de lectura detectada."""
    type: str
    devicePath: Optional[str] = None
    description: str
    available: bool
    properties: Dict[str, Any] = {}


@router.get("/detect", response_model=List[HardwareInfoResponse])
async def detect_hardware(
    reader_service: ReaderService = Depends(get_reader_service)
) -> List[HardwareInfoResponse]:
    """Detecta lectores IC, NFC de la plataforma y el servicio remoto."""
    try:
        detected = await reader_service.detect_hardware()
        return [HardwareInfoResponse(**info) for info in detected]
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error detecting hardware: {str(e)}")


@router.get("/preferred", response_model=HardwareInfoResponse)
async def preferred_hardware(
    reader_service: ReaderService = Depends(get_reader_service)
) -> HardwareInfoResponse:
    """Obtiene la capacidad de lectura preferida."""
    try:
        info = await reader_service.preferred_hardware()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error detecting hardware: {str(e)}")

    if info is None:
        raise HTTPException(status_code=404, detail="No card reading hardware available")
    return HardwareInfoResponse(**info)
