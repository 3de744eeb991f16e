"""Configuración en tiempo de ejecución del lector IC.

Este módulo contiene el modelo Pydantic que valida los parámetros del
motor serie (intervalos, timeouts, reintentos y rutas adicionales) antes
de construir la sesión de lectura.
"""

import os
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


ENV_PREFIX = "ICREADER_"


class ReaderSettings(BaseModel):
    """Parámetros del lector de tarjetas IC.

    Los valores por defecto corresponden al comportamiento de los lectores
    serie de referencia: sondeo cada 500 ms y lecturas acotadas a 200 ms.
    """

    poll_interval: float = Field(
        0.5,
        gt=0,
        le=10.0,
        description="Intervalo entre comandos de lectura en modo continuo (s)"
    )

    read_timeout: float = Field(
        0.2,
        gt=0,
        le=2.0,
        description="Timeout de cada lectura del bucle de recepción (s)"
    )

    write_timeout: float = Field(
        1.0,
        gt=0,
        le=10.0,
        description="Timeout de escritura en el puerto (s)"
    )

    open_attempts: int = Field(
        2,
        ge=1,
        le=10,
        description="Intentos de apertura por ruta cuando el puerto está ocupado"
    )

    open_retry_delay: float = Field(
        0.1,
        ge=0,
        le=5.0,
        description="Espera entre intentos de apertura (s)"
    )

    device_address: int = Field(
        0x01,
        ge=0,
        le=0xFF,
        description="Dirección de estación usada en las tramas salientes"
    )

    preferred_path: Optional[str] = Field(
        None,
        description="Ruta que se prueba antes que el catálogo"
    )

    extra_paths: List[str] = Field(
        default_factory=list,
        description="Rutas adicionales que se agregan al catálogo"
    )

    beep_on_read: bool = Field(
        True,
        description="Emitir pitido tras cada lectura aceptada"
    )

    reader_type: str = Field(
        "IC_SERIAL",
        min_length=1,
        description="Tipo de lector reportado en eventos y estado"
    )

    event_history: int = Field(
        50,
        ge=0,
        le=10000,
        description="Eventos recientes que conserva el servicio"
    )

    @field_validator('preferred_path')
    @classmethod
    def validate_preferred_path(cls, v):
        """Validar la ruta preferida.

        Args:
            v: Ruta a validar

        Returns:
            str: Ruta sin espacios, o None si está vacía
        """
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator('extra_paths', mode='before')
    @classmethod
    def validate_extra_paths(cls, v):
        """Validar rutas adicionales.

        Acepta una lista o una cadena separada por comas (variables de entorno).

        Raises:
            ValueError: Si alguna ruta contiene caracteres de control
        """
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")

        paths = []
        for path in v:
            path = str(path).strip()
            if not path:
                continue
            if any(ord(c) < 32 or ord(c) == 127 for c in path):
                raise ValueError("Las rutas no pueden contener caracteres de control")
            if path not in paths:
                paths.append(path)
        return paths

    model_config = {
        "validate_assignment": True,
        "json_schema_extra": {
            "example": {
                "poll_interval": 0.5,
                "read_timeout": 0.2,
                "preferred_path": "/dev/ttyS0",
                "extra_paths": ["/dev/ttyS9"],
            }
        }
    }

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> 'ReaderSettings':
        """Crea la configuración desde variables de entorno.

        Variables reconocidas (con prefijo ICREADER_):
        - POLL_INTERVAL, READ_TIMEOUT, WRITE_TIMEOUT
        - OPEN_ATTEMPTS, OPEN_RETRY_DELAY, DEVICE_ADDRESS
        - PREFERRED_PATH, EXTRA_PATHS (separadas por comas)
        - BEEP_ON_READ, READER_TYPE, EVENT_HISTORY

        Returns:
            Instancia validada

        Raises:
            ValidationError: Si algún valor es inválido
        """
        values = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{prefix}{name.upper()}")
            if raw is not None:
                values[name] = raw

        if "device_address" in values:
            values["device_address"] = int(values["device_address"], 0)

        return cls(**values)
