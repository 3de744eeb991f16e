"""Main FastAPI application for the IC Reader Bridge.

Expone el lector de tarjetas IC por REST y difunde sus eventos por WebSocket.
"""

import json
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from api.websocket_manager import ConnectionManager
from api.routes import register_routes
from modules.icreader_config import ReaderSettings
from services.reader_service import ReaderService


# Configure logging
logging.basicConfig(
    level=os.getenv("ICREADER_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# Variables globales para servicios
connection_manager = ConnectionManager()
reader_service: Optional[ReaderService] = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager - inicializa y limpia servicios."""
    global reader_service

    logger.info("Iniciando IC Reader Bridge API")

    try:
        settings = ReaderSettings.from_env()
        reader_service = ReaderService(settings=settings, manager=connection_manager)
        await reader_service.start()

        # Almacenar en app state
        app.state.connection_manager = connection_manager
        app.state.reader_service = reader_service

        logger.info("Servicios iniciados correctamente")

        yield

    finally:
        logger.info("Cerrando IC Reader Bridge API")

        if reader_service:
            try:
                await reader_service.stop()
                logger.info("Lector desconectado")
            except Exception as e:
                logger.error(f"Error desconectando el lector: {e}")


app = FastAPI(
    title="IC Reader Bridge API",
    description="API para detección de hardware y lectura de tarjetas IC por puerto serie",
    version="1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Registrar todas las rutas API bajo /api/v1/
register_routes(app)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Manejador de WebSocket: difunde eventos del lector y responde comandos simples."""
    await connection_manager.connect(websocket)

    try:
        await connection_manager.send_personal_message({
            "type": "connection_established",
            "message": "Conectado al WebSocket del lector IC",
            "timestamp": time.time()
        }, websocket)

        while True:
            data = await websocket.receive_text()

            try:
                command = json.loads(data)
            except json.JSONDecodeError:
                await connection_manager.send_personal_message({
                    "type": "parse_error",
                    "message": "Error al parsear JSON",
                    "timestamp": time.time()
                }, websocket)
                continue

            if not isinstance(command, dict) or "type" not in command:
                await connection_manager.send_personal_message({
                    "type": "error",
                    "message": "Formato de comando inválido",
                    "timestamp": time.time()
                }, websocket)
                continue

            command_type = command.get("type")

            if command_type == "ping":
                response = {"type": "pong", "timestamp": time.time()}
            elif command_type == "get_status" and reader_service:
                response = {
                    "type": "status_response",
                    "data": await reader_service.get_status(),
                    "timestamp": time.time()
                }
            else:
                response = {
                    "type": "unknown_command",
                    "message": f"Comando '{command_type}' no reconocido",
                    "timestamp": time.time()
                }
            await connection_manager.send_personal_message(response, websocket)

    except WebSocketDisconnect:
        logger.info("Cliente WebSocket desconectado")
    except Exception as e:
        logger.error(f"Error en WebSocket: {e}")
    finally:
        connection_manager.disconnect(websocket)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=os.getenv("ICREADER_HOST", "0.0.0.0"),
        port=int(os.getenv("ICREADER_PORT", "8000")),
        log_level="info"
    )
