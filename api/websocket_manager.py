"""WebSocket Connection Manager para el puente del lector IC.

Los mensajes difundidos tienen la forma ``{"type", "data", "timestamp"}``.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

from adapters.interfaces import WebSocketManagerInterface


logger = logging.getLogger(__name__)


class ConnectionManager(WebSocketManagerInterface):
    """Clientes WebSocket suscritos a los eventos del lector."""

    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket) -> None:
        """Acepta un cliente y lo suscribe a los eventos.

        Args:
            websocket: Conexión entrante
        """
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"Cliente WebSocket suscrito ({len(self.active_connections)} activos)")

    def disconnect(self, websocket: WebSocket) -> None:
        """Quita un cliente de la lista. Sin efecto si ya no estaba."""
        try:
            self.active_connections.remove(websocket)
        except ValueError:
            return
        logger.info(f"Cliente WebSocket eliminado ({len(self.active_connections)} activos)")

    async def send_personal_message(self, message: Dict[str, Any], websocket: WebSocket) -> None:
        """Envía un mensaje a un único cliente."""
        if not await self._send(websocket, json.dumps(message)):
            self.disconnect(websocket)

    async def broadcast(self, message: Dict[str, Any]) -> None:
        """Envía un mensaje a todos los clientes.

        Los clientes cuyo envío falla se eliminan.
        """
        clients = list(self.active_connections)
        if not clients:
            return

        payload = json.dumps(message)
        results = await asyncio.gather(*(self._send(ws, payload) for ws in clients))

        for websocket, delivered in zip(clients, results):
            if not delivered:
                self.disconnect(websocket)

    async def broadcast_card_event(self, card: Dict[str, Any]) -> None:
        """Difunde una lectura de tarjeta (cardId, cardType, readTime...)."""
        await self.broadcast(self._message("card_detected", card))

    async def broadcast_reader_status(self, connected: bool, details: Optional[Dict[str, Any]] = None) -> None:
        """Difunde la conexión o desconexión del lector.

        Args:
            connected: True si el lector quedó conectado
            details: Datos adicionales, por ejemplo ``devicePath``
        """
        message_type = "reader_connected" if connected else "reader_disconnected"
        await self.broadcast(self._message(message_type, details or {}))

    async def broadcast_error(self, message: str, code: int) -> None:
        await self.broadcast(self._message("reader_error", {"message": message, "code": code}))

    def get_connection_count(self) -> int:
        return len(self.active_connections)

    async def _send(self, websocket: WebSocket, payload: str) -> bool:
        try:
            await websocket.send_text(payload)
        except Exception as e:
            logger.error(f"Error enviando a cliente WebSocket: {e}")
            return False
        return True

    def _message(self, message_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "type": message_type,
            "data": data,
            "timestamp": datetime.now().isoformat(),
        }
