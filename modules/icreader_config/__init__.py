"""Módulo de configuración del lector IC.

Valida los parámetros de ejecución del motor serie y permite cargarlos
desde variables de entorno.
"""

from modules.icreader_config.settings import ReaderSettings, ENV_PREFIX

__all__ = [
    "ReaderSettings",
    "ENV_PREFIX",
]

__version__ = "1.0.0"
