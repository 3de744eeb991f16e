"""Fixtures compartidas: puertos serie simulados."""

import errno
import threading
import time

import pytest
import serial


class FakePort:
    """Puerto en memoria con la interfaz mínima de serial.Serial."""

    def __init__(self, path: str):
        self.path = path
        self.is_open = True
        self.written = []
        self.fail_read = None
        self.fail_write = None
        self._rx = bytearray()
        self._cond = threading.Condition()

    @property
    def in_waiting(self) -> int:
        with self._cond:
            return len(self._rx)

    def inject(self, data: bytes) -> None:
        """Simula bytes enviados por el lector."""
        with self._cond:
            self._rx.extend(data)
            self._cond.notify_all()

    def read(self, size: int = 1) -> bytes:
        with self._cond:
            if self.fail_read is None and not self._rx:
                self._cond.wait(0.05)
            if self.fail_read is not None:
                raise self.fail_read
            chunk = bytes(self._rx[:size])
            del self._rx[:size]
            return chunk

    def write(self, data: bytes) -> int:
        if self.fail_write is not None:
            raise self.fail_write
        self.written.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.is_open = False


class FakePortFactory:
    """Abre FakePorts solo para las rutas marcadas como disponibles."""

    def __init__(self, available=(), errors=None):
        self.available = set(available)
        self.errors = dict(errors or {})
        self.attempts = []
        self.ports = {}

    def __call__(self, descriptor, settings):
        path = descriptor.path
        self.attempts.append(path)
        if path in self.errors:
            raise self.errors[path]
        if path not in self.available:
            raise serial.SerialException(
                errno.ENOENT, f"could not open port {path}: [Errno 2] No such file or directory"
            )
        port = FakePort(path)
        self.ports[path] = port
        return port


@pytest.fixture
def fake_port_factory():
    """Clase de la fábrica de puertos simulados."""
    return FakePortFactory


@pytest.fixture
def wait_for():
    """Espera activa hasta que se cumple una condición."""
    def _wait(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait
