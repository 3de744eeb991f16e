"""Sesión de lectura de tarjetas IC

Máquina de estados de conexión y lectura continua, con entrega de eventos
a un receptor inyectado.
"""

from modules.icreader_session.events import (
    ReaderEventSink,
    LoggingEventSink,
    CallbackEventSink,
)
from modules.icreader_session.session import (
    CardReaderSession,
    CommandResult,
    InitializeResult,
    SessionState,
)

__version__ = "1.0.0"
__all__ = [
    "ReaderEventSink",
    "LoggingEventSink",
    "CallbackEventSink",
    "CardReaderSession",
    "CommandResult",
    "InitializeResult",
    "SessionState",
]
