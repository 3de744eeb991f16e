#!/usr/bin/env python3
"""Demo del lector de tarjetas IC

Detecta el hardware disponible, conecta con el lector y muestra en vivo
las tarjetas detectadas en modo de lectura continua.
"""

import argparse
import logging
import threading
import time
from typing import List, Optional

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from core.entities.card import CardEvent
from modules.icreader_config import ReaderSettings
from modules.icreader_hardware import DeviceCatalog, HardwareDetector
from modules.icreader_session import CardReaderSession, ReaderEventSink


class ConsoleEventSink(ReaderEventSink):
    """Muestra los eventos del lector en consola."""

    def __init__(self, console: Console):
        self.console = console
        self.cards: List[CardEvent] = []
        self._lock = threading.Lock()

    def on_connected(self, device_path: str) -> None:
        self.console.print(f"[green]✓[/green] Lector conectado en {device_path}")

    def on_disconnected(self) -> None:
        self.console.print("[yellow]⏸[/yellow] Lector desconectado")

    def on_card_detected(self, event: CardEvent) -> None:
        with self._lock:
            self.cards.append(event)

    def on_error(self, message: str, code: int) -> None:
        self.console.print(f"[red]✗[/red] Error {code}: {message}")

    def snapshot(self) -> List[CardEvent]:
        with self._lock:
            return list(self.cards)


class CardReaderDemo:
    """Demostración del lector de tarjetas IC."""

    def __init__(self, settings: ReaderSettings, catalog: Optional[DeviceCatalog] = None):
        self.console = Console()
        self.sink = ConsoleEventSink(self.console)
        self.session = CardReaderSession(self.sink, catalog=catalog, settings=settings)
        self.detector = HardwareDetector(self.session.catalog)

    def show_hardware(self) -> None:
        """Muestra el hardware detectado."""
        table = Table(title="Hardware de lectura")
        table.add_column("Tipo", style="cyan")
        table.add_column("Ruta")
        table.add_column("Descripción")
        table.add_column("Disponible", style="green")

        for info in self.detector.detect_all():
            table.add_row(
                info.type.value,
                info.device_path or "-",
                info.description,
                "sí" if info.available else "no",
            )
        self.console.print(table)

    def create_cards_table(self) -> Table:
        """Crea tabla de tarjetas detectadas."""
        status = self.session.status()
        table = Table(title=f"Tarjetas detectadas - {status['devicePath']} ({status['state']})")
        table.add_column("#", style="dim")
        table.add_column("ID", style="cyan")
        table.add_column("Tipo", style="green")
        table.add_column("Hora")

        for i, event in enumerate(self.sink.snapshot()[-15:], 1):
            table.add_row(
                str(i),
                event.card_id,
                event.card_family.value,
                event.read_timestamp.astimezone().strftime("%H:%M:%S"),
            )
        return table

    def run(self, device_path: Optional[str], duration: float) -> bool:
        """Ejecuta la demo."""
        self.console.print(Panel.fit("[bold blue]Lector de tarjetas IC - Demostración[/bold blue]",
                                     border_style="blue"))
        self.show_hardware()

        result = self.session.initialize(device_path)
        if not result:
            self.console.print(f"[red]✗[/red] {result.error}")
            return False

        self.session.start_continuous_reading()
        deadline = time.monotonic() + duration if duration > 0 else None

        try:
            with Live(self.create_cards_table(), console=self.console, refresh_per_second=4) as live:
                while deadline is None or time.monotonic() < deadline:
                    if not self.session.is_connected:
                        break
                    live.update(self.create_cards_table())
                    time.sleep(0.25)
        finally:
            self.session.disconnect()

        self.console.print(f"\nTarjetas leídas: {len(self.sink.snapshot())}")
        return True


def main():
    """Función principal de la demo."""
    parser = argparse.ArgumentParser(description='Lee tarjetas con un lector IC serie')
    parser.add_argument('--device', help='Ruta del lector (ej: /dev/ttyS0 o loop://)')
    parser.add_argument('--duration', type=float, default=0,
                        help='Segundos de lectura (0 = hasta Ctrl+C)')
    parser.add_argument('--no-beep', action='store_true', help='No emitir pitido tras cada lectura')
    parser.add_argument('--verbose', '-v', action='store_true', help='Modo verbose')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    settings = ReaderSettings.from_env()
    if args.no_beep:
        settings.beep_on_read = False

    demo = CardReaderDemo(settings)
    return 0 if demo.run(args.device, args.duration) else 1


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except KeyboardInterrupt:
        print("\nDemo terminada por el usuario")
