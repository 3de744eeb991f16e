#!/usr/bin/env python3
"""Diagnóstico de interfaces para lectores IC.

Recorre el catálogo de rutas candidatas e informa cuáles existen, cuáles
son accesibles y qué capacidad de lectura se elegiría automáticamente.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

# Agregar el directorio del proyecto al path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from rich.console import Console
from rich.table import Table

from modules.icreader_hardware import DeviceCatalog, HardwareDetector


def build_report(catalog: DeviceCatalog) -> dict:
    """Genera el reporte de accesibilidad del catálogo."""
    detector = HardwareDetector(catalog)
    preferred = detector.preferred()

    return {
        "candidates": [
            {
                **descriptor.to_dict(),
                "exists": os.path.exists(descriptor.path),
                "accessible": catalog.is_accessible(descriptor.path),
            }
            for descriptor in catalog.candidate_paths()
        ],
        "preferred": preferred.to_dict() if preferred else None,
    }


def main():
    """Función principal del CLI."""
    parser = argparse.ArgumentParser(
        description='Verifica las interfaces disponibles para lectores de tarjetas IC'
    )
    parser.add_argument(
        '--extra-path',
        action='append',
        default=[],
        help='Ruta adicional a verificar (repetible)'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Imprimir el reporte en JSON'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Modo verbose'
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    catalog = DeviceCatalog()
    if args.extra_path:
        catalog = catalog.with_extra_paths(args.extra_path)

    report = build_report(catalog)

    if args.json:
        print(json.dumps(report, indent=2))
        return 0

    console = Console()
    table = Table(title="Interfaces candidatas")
    table.add_column("Ruta", style="cyan")
    table.add_column("Interfaz")
    table.add_column("Velocidad", justify="right")
    table.add_column("Existe")
    table.add_column("Accesible")

    for entry in report["candidates"]:
        table.add_row(
            entry["path"],
            entry["communication"],
            str(entry["speed"]),
            "[green]sí[/green]" if entry["exists"] else "[dim]no[/dim]",
            "[green]sí[/green]" if entry["accessible"] else "[red]no[/red]",
        )
    console.print(table)

    preferred = report["preferred"]
    if preferred:
        console.print(f"\nPreferido: [bold]{preferred['type']}[/bold] {preferred['devicePath'] or ''}")

    accessible = sum(1 for entry in report["candidates"] if entry["accessible"])
    return 0 if accessible else 1


if __name__ == '__main__':
    sys.exit(main())
