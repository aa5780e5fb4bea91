# ==============================================================================
# CORABASTOS BULLETIN - TABLE PARSER
# ==============================================================================
#
# Turns the text extracted from a daily bulletin PDF into price rows.
#
# The PDF text carries no column positions, so the table is found
# heuristically:
#   1. Header lines are accumulated until 3 of the 4 required header words
#      have been seen (the header is usually broken over several lines)
#   2. Every following line is anchored on its trailing "$" price tokens
#   3. The table closes on a section marker (Página, Total, Nota, ...)
#
# ==============================================================================

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


logger = logging.getLogger(__name__)


# ==============================================================================
# DATA MODELS
# ==============================================================================

class ProductPrice(BaseModel):
    """Single product row of the bulletin price table"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., description="Product name, words joined by single spaces")
    presentation: str = Field(..., description="Packaging, e.g. KILO, BULTO, CAJA")
    quantity: str = Field(..., description="Units per presentation, digits only")
    unit: str = Field(..., description="Unit of measure")
    extra_quality_price: str = Field(..., alias="extraQualityPrice")
    first_quality_price: str = Field(..., alias="firstQualityPrice")
    unit_price: str = Field(..., alias="unitPrice")
    previous_day_variation: str = Field("N/A", alias="previousDayVariation")


# ==============================================================================
# TABLE VOCABULARY
# ==============================================================================

HEADER_KEYWORDS = [
    "nombre", "presentación", "cantidad", "unidad", "medida", "precio",
    "calidad", "extra", "primera", "variación", "día", "anterior",
]

REQUIRED_HEADER_WORDS = ["nombre", "presentación", "cantidad", "precio"]
HEADER_QUORUM = 3

SECTION_MARKERS = [
    re.compile(r"^página", re.IGNORECASE),
    re.compile(r"^total", re.IGNORECASE),
    re.compile(r"^resumen", re.IGNORECASE),
    re.compile(r"^nota", re.IGNORECASE),
    re.compile(r"^fuente", re.IGNORECASE),
]

PRICE_PATTERN = re.compile(r"\$[0-9.,]+")
QUANTITY_PATTERN = re.compile(r"^[0-9]+$")
MIN_PRICE_DIGITS = 4
NO_VARIATION = "N/A"

SPANISH_MONTHS = {
    "enero": 1, "febrero": 2, "marzo": 3, "abril": 4, "mayo": 5, "junio": 6,
    "julio": 7, "agosto": 8, "septiembre": 9, "setiembre": 9, "octubre": 10,
    "noviembre": 11, "diciembre": 12,
}


# ==============================================================================
# SCAN STATE
# ==============================================================================

class ScanPhase(Enum):
    SEARCHING_HEADER = "searching_header"
    IN_TABLE = "in_table"
    TABLE_CLOSED = "table_closed"


@dataclass
class TableScanState:
    """
    Forward-only state of a table scan.

    header_lines holds the keyword lines seen while the header is still
    being searched; it is cleared once the table has closed.
    """
    phase: ScanPhase = ScanPhase.SEARCHING_HEADER
    header_lines: List[str] = field(default_factory=list)

    @property
    def header_found(self) -> bool:
        return self.phase is not ScanPhase.SEARCHING_HEADER

    @property
    def in_table(self) -> bool:
        return self.phase is ScanPhase.IN_TABLE

    def offer_header_line(self, line: str) -> bool:
        """Adds a keyword line to the header buffer, returns True on quorum"""
        self.header_lines.append(line)
        combined = " ".join(self.header_lines).lower()
        found = [word for word in REQUIRED_HEADER_WORDS if word in combined]
        if len(found) >= HEADER_QUORUM:
            self.phase = ScanPhase.IN_TABLE
            return True
        return False

    def close_table(self) -> None:
        self.phase = ScanPhase.TABLE_CLOSED
        self.header_lines = []


# ==============================================================================
# LINE HELPERS
# ==============================================================================

def split_lines(text: str) -> List[str]:
    """Splits text on newlines, trims every line and drops empty ones"""
    return [line.strip() for line in text.split("\n") if line.strip()]


def has_header_keyword(line: str) -> bool:
    lowered = line.lower()
    return any(keyword in lowered for keyword in HEADER_KEYWORDS)


def is_new_section(line: str) -> bool:
    """True when the line opens a section that follows the price table"""
    return any(pattern.search(line) for pattern in SECTION_MARKERS)


# ==============================================================================
# HEADER LOCATOR
# ==============================================================================

def locate_header(lines: List[str], state: Optional[TableScanState] = None) -> Optional[int]:
    """
    Returns the index of the first line after the table header, or None.

    Keyword lines are accumulated (not necessarily contiguous) until the
    quorum of required words is met; the line completing the quorum is
    the last header line.
    """
    state = state or TableScanState()
    for index, line in enumerate(lines):
        if has_header_keyword(line) and state.offer_header_line(line):
            return index + 1
    return None


# ==============================================================================
# ROW PARSER
# ==============================================================================

def _price_digits(token: str) -> int:
    return len(re.sub(r"[$,.]", "", token))


def parse_table_row(line: str) -> Optional[ProductPrice]:
    """
    Parses a row like "ALAS DE POLLO KILO 1 KILO $16,000 $16,000 $16,000 Estable"

    Structure: [Name...] [Presentation] [Quantity] [Unit] [Price x3] [Variation]
    Returns None for anything that does not fit.
    """
    normalized = re.sub(r"\s+", " ", line).strip()

    prices = [
        token for token in PRICE_PATTERN.findall(normalized)
        if _price_digits(token) >= MIN_PRICE_DIGITS
    ]
    if len(prices) < 3:
        return None

    # Extra matches belong to the name; the prices are the trailing run
    extra_price, first_price, unit_price = prices[-3:]

    first_index = normalized.find(extra_price)
    if first_index == -1:
        return None
    before_prices = normalized[:first_index].strip()

    last_index = normalized.rfind(unit_price)
    variation = normalized[last_index + len(unit_price):].strip()

    parts = before_prices.split()
    if len(parts) < 4:
        return None

    name = " ".join(parts[:-3])
    presentation, quantity, unit = parts[-3:]

    if not name or not presentation or not QUANTITY_PATTERN.match(quantity) or not unit:
        return None

    return ProductPrice(
        name=name,
        presentation=presentation,
        quantity=quantity,
        unit=unit,
        extra_quality_price=f"${extra_price.replace('$', '', 1).strip()}",
        first_quality_price=f"${first_price.replace('$', '', 1).strip()}",
        unit_price=f"${unit_price.replace('$', '', 1).strip()}",
        previous_day_variation=variation or NO_VARIATION,
    )


# ==============================================================================
# TABLE SCANNER
# ==============================================================================

def extract_prices(text: str) -> List[ProductPrice]:
    """
    Extracts every product row of the bulletin price table, in source order
    """
    lines = split_lines(text)
    state = TableScanState()
    products: List[ProductPrice] = []

    start = locate_header(lines, state)
    if start is None:
        logger.info("No price table header found in %d lines", len(lines))
        return products

    for line in lines[start:]:
        if not state.in_table:
            continue

        # Repeated header on a new page, keep the current table going
        if has_header_keyword(line) and products:
            continue

        row = parse_table_row(line)
        if row:
            products.append(row)
        elif not line or is_new_section(line):
            logger.debug("Price table closed at line: %s", line)
            state.close_table()

    logger.info("Extracted %d product rows", len(products))
    return products


# ==============================================================================
# DATE EXTRACTION
# ==============================================================================

DATE_PATTERNS = [
    ("dmy", re.compile(r"([0-9]{1,2})/([0-9]{1,2})/([0-9]{4})")),
    ("iso", re.compile(r"([0-9]{4})-([0-9]{1,2})-([0-9]{1,2})")),
    ("long", re.compile(r"([0-9]{1,2})\s+de\s+(\w+)\s+de\s+([0-9]{4})", re.IGNORECASE)),
]


def extract_date(text: str) -> Optional[str]:
    """Finds the first bulletin date in the text, formatted YYYY-MM-DD"""
    for kind, pattern in DATE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue

        if kind == "dmy":
            day, month, year = match.groups()
        elif kind == "iso":
            year, month, day = match.groups()
        else:
            day, month_name, year = match.groups()
            month_number = SPANISH_MONTHS.get(month_name.lower())
            if month_number is None:
                return None
            month = str(month_number)

        return f"{year}-{month.zfill(2)}-{day.zfill(2)}"

    return None
