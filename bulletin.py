# ==============================================================================
# CORABASTOS BULLETIN - DOWNLOAD & HISTORY
# ==============================================================================
#
# Fetches the daily bulletin PDF for a given date and runs it through the
# table parser. History mode walks a date range in batches of concurrent
# downloads, keeping only per-day counts.
#
# ==============================================================================

import asyncio
import logging
import os
import re
from datetime import date, datetime, timedelta
from io import BytesIO
from typing import List, Literal, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, model_serializer
from pypdf import PdfReader

from price_parser import ProductPrice, extract_date, extract_prices


logger = logging.getLogger(__name__)


# ==============================================================================
# CONFIGURATION
# ==============================================================================

BASE_URL = os.environ.get(
    "BULLETIN_BASE_URL", "https://corabastos.com.co/wp-content/uploads"
)
HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36',
}
PDF_TIMEOUT = float(os.environ.get("PDF_TIMEOUT", 30))
BATCH_SIZE = int(os.environ.get("BATCH_SIZE", 5))

DATE_FORMAT = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
HISTORY_MESSAGE = (
    "Data processed successfully. Products are ready to be stored in database. "
    "Use individual date endpoints to retrieve full product details if needed."
)


# ==============================================================================
# ERRORS
# ==============================================================================

class DateValidationError(ValueError):
    """Raised for date parameters that are not valid YYYY-MM-DD dates"""


class BulletinNotFound(Exception):
    """The bulletin URL answered with a non-success status"""

    def __init__(self, url: str, status_code: int):
        super().__init__(f"PDF not found or could not be downloaded ({status_code})")
        self.url = url
        self.status_code = status_code


# ==============================================================================
# DATA MODELS
# ==============================================================================

class BulletinResponse(BaseModel):
    """Parsed bulletin of a single day"""
    model_config = ConfigDict(populate_by_name=True)

    fecha: str
    total_productos: int = Field(..., alias="totalProductos")
    productos: List[ProductPrice]
    fuente: str


class DateSummary(BaseModel):
    """Outcome of one day in history mode"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    date: str
    total_productos: int = Field(0, alias="totalProductos")
    status: Literal["success", "error", "not_found"]
    fuente: str
    error: Optional[str] = None

    @model_serializer(mode="wrap")
    def _omit_empty_error(self, handler):
        data = handler(self)
        if self.error is None:
            data.pop("error", None)
        return data


class HistoryResponse(BaseModel):
    """Per-day summary of a date range"""
    model_config = ConfigDict(populate_by_name=True)

    from_date: str = Field(..., alias="from")
    to_date: str = Field(..., alias="to")
    total_days: int = Field(..., alias="totalDays")
    processed_days: int = Field(..., alias="processedDays")
    successful_days: int = Field(..., alias="successfulDays")
    failed_days: int = Field(..., alias="failedDays")
    total_productos: int = Field(..., alias="totalProductos")
    summary: List[DateSummary]
    message: str = HISTORY_MESSAGE


# ==============================================================================
# UTILITY FUNCTIONS
# ==============================================================================

def parse_date_param(value: str) -> date:
    """Validates a YYYY-MM-DD query value and returns the date"""
    if not DATE_FORMAT.match(value):
        raise DateValidationError("Invalid date format. Use YYYY-MM-DD (e.g., 2025-11-20)")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise DateValidationError(
            "Invalid date. Please provide a valid date in format YYYY-MM-DD"
        ) from None


def date_range(start: date, end: date) -> List[date]:
    """Every calendar day from start to end, both included"""
    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days


def build_bulletin_url(day: date) -> str:
    """.../YYYY/MM/Boletin_diario_YYYYMMDD.pdf"""
    return f"{BASE_URL}/{day:%Y}/{day:%m}/Boletin_diario_{day:%Y%m%d}.pdf"


def extract_pdf_content(pdf_bytes: bytes) -> str:
    """Extracts raw text from PDF"""
    pdf_file = BytesIO(pdf_bytes)
    reader = PdfReader(pdf_file)
    text = ""
    for page in reader.pages:
        extracted = page.extract_text()
        if extracted:
            text += f"\n{extracted}\n"
    return text


def parse_bulletin(pdf_bytes: bytes, source: str, fallback_date: str) -> BulletinResponse:
    """Runs the table parser over a bulletin PDF"""
    text = extract_pdf_content(pdf_bytes)
    productos = extract_prices(text)
    return BulletinResponse(
        fecha=extract_date(text) or fallback_date,
        total_productos=len(productos),
        productos=productos,
        fuente=source,
    )


# ==============================================================================
# DOWNLOAD
# ==============================================================================

async def download_bulletin(client: httpx.AsyncClient, url: str) -> bytes:
    """Downloads the PDF bytes, raising BulletinNotFound on non-success status"""
    resp = await client.get(url, headers=HEADERS)
    if not resp.is_success:
        raise BulletinNotFound(url, resp.status_code)
    return resp.content


async def fetch_bulletin(day: date) -> BulletinResponse:
    """Downloads and parses the bulletin of a single day"""
    url = build_bulletin_url(day)
    logger.info("Processing: %s", url)
    async with httpx.AsyncClient(timeout=PDF_TIMEOUT) as client:
        content = await download_bulletin(client, url)
    return parse_bulletin(content, url, day.isoformat())


# ==============================================================================
# HISTORY
# ==============================================================================

async def summarize_day(client: httpx.AsyncClient, day: date) -> DateSummary:
    """
    Downloads and parses one day, never raising.

    The download is bounded by PDF_TIMEOUT; a timeout only fails this day.
    """
    url = build_bulletin_url(day)
    day_str = day.isoformat()
    try:
        content = await asyncio.wait_for(download_bulletin(client, url), timeout=PDF_TIMEOUT)
        productos = extract_prices(extract_pdf_content(content))
    except BulletinNotFound as e:
        logger.warning("Bulletin not found for %s (%s)", day_str, e.status_code)
        return DateSummary(date=day_str, status="not_found", fuente=url, error=str(e))
    except asyncio.TimeoutError:
        logger.warning("Bulletin download timed out for %s", day_str)
        return DateSummary(
            date=day_str, status="error", fuente=url,
            error=f"Download timed out after {PDF_TIMEOUT:g} seconds",
        )
    except Exception as e:
        logger.warning("Bulletin failed for %s: %s", day_str, e)
        return DateSummary(date=day_str, status="error", fuente=url, error=str(e) or repr(e))

    return DateSummary(date=day_str, total_productos=len(productos), status="success", fuente=url)


async def collect_history(start: date, end: date) -> HistoryResponse:
    """
    Summarizes every day in [start, end].

    Days are processed BATCH_SIZE at a time; each batch is awaited before the
    next one starts, so the summary stays in date order.
    """
    days = date_range(start, end)
    summary: List[DateSummary] = []

    async with httpx.AsyncClient(timeout=PDF_TIMEOUT) as client:
        for i in range(0, len(days), BATCH_SIZE):
            batch = days[i:i + BATCH_SIZE]
            logger.info("Processing batch %s .. %s", batch[0], batch[-1])
            results = await asyncio.gather(
                *(summarize_day(client, day) for day in batch),
                return_exceptions=True,
            )
            for day, result in zip(batch, results):
                if isinstance(result, BaseException):
                    summary.append(DateSummary(
                        date=day.isoformat(), status="error",
                        fuente=build_bulletin_url(day),
                        error=str(result) or "Unknown error",
                    ))
                else:
                    summary.append(result)

    successful = [s for s in summary if s.status == "success"]
    return HistoryResponse(
        from_date=start.isoformat(),
        to_date=end.isoformat(),
        total_days=len(days),
        processed_days=len(summary),
        successful_days=len(successful),
        failed_days=len(summary) - len(successful),
        total_productos=sum(s.total_productos for s in successful),
        summary=summary,
    )
