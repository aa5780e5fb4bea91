"""Shared fixtures.

PDF rendering is not exercised here: ``bulletin.extract_pdf_content`` is
patched so that mocked HTTP bodies are read back as plain UTF-8 text.
"""

from __future__ import annotations

import pytest

import bulletin


BULLETIN_TEXT = """\
CORABASTOS
Boletín diario de precios mayoristas
Fecha: 20/11/2025
NOMBRE PRESENTACIÓN CANTIDAD UNIDAD DE
MEDIDA PRECIO CALIDAD EXTRA PRECIO CALIDAD
PRIMERA PRECIO POR UNIDAD VARIACIÓN DÍA ANTERIOR
VALENTON KILO 1 KILO $35,000 $35,000 $35,000 Estable
PAPA PASTUSA BULTO 50 KILO $120.000 $110.000 $2.400 Sube
TOMATE KILO 2 KILO $3,000 $3,100 $3,200
Total productos: 3
CEBOLLA CABEZONA BULTO 50 KILO $90,000 $85,000 $1,800 Baja
"""


@pytest.fixture()
def bulletin_text() -> str:
    return BULLETIN_TEXT


@pytest.fixture()
def pdf_as_text(monkeypatch):
    """Treat downloaded/uploaded PDF bytes as UTF-8 text."""
    monkeypatch.setattr(bulletin, "extract_pdf_content", lambda content: content.decode("utf-8"))
