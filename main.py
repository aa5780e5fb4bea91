# ==============================================================================
# CORABASTOS DAILY BULLETIN PRICE API
# ==============================================================================
#
# Endpoints:
#   1. GET  /api/prices            - parsed bulletin of one day (default today)
#   2. GET  /api/prices/history    - per-day summary of a date range
#   3. POST /api/extract-manual    - parse an uploaded bulletin PDF
#   4. GET  /                      - health check
#
# ==============================================================================

import logging
import os
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, File, Query, UploadFile
from fastapi.responses import JSONResponse

from bulletin import (
    BulletinNotFound,
    BulletinResponse,
    DateValidationError,
    HistoryResponse,
    collect_history,
    fetch_bulletin,
    parse_bulletin,
    parse_date_param,
)


logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Corabastos Bulletin Price Scraper", version="1.0.0")


def error_response(status_code: int, message: str, details: Optional[str] = None) -> JSONResponse:
    content = {"error": message}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


# ==============================================================================
# API ENDPOINTS
# ==============================================================================

@app.get("/api/prices", response_model=BulletinResponse)
async def get_prices(
    date: Optional[str] = Query(None, description="YYYY-MM-DD (e.g., 2025-11-20), defaults to today"),
):
    """
    Downloads and parses the Corabastos daily bulletin

    Process:
    1. Builds the bulletin URL for the requested date
    2. Downloads the PDF and extracts its text
    3. Parses the price table into product rows
    """
    try:
        target_date = parse_date_param(date) if date else datetime.now().date()
    except DateValidationError as e:
        return error_response(400, str(e))

    try:
        return await fetch_bulletin(target_date)
    except BulletinNotFound as e:
        logger.warning("Download failed for %s: %s", e.url, e)
        return error_response(500, "Could not download the PDF")
    except Exception as e:
        logger.exception("Error processing PDF for %s", target_date)
        return error_response(500, "Error processing the PDF", str(e))


@app.get("/api/prices/history", response_model=HistoryResponse)
async def get_price_history(
    from_param: Optional[str] = Query(None, alias="from", description="Start date YYYY-MM-DD"),
    to_param: Optional[str] = Query(None, alias="to", description="End date YYYY-MM-DD"),
):
    """
    Processes every bulletin in a date range and returns per-day counts

    Product rows are not returned; use /api/prices for a single day's detail.
    """
    if not from_param or not to_param:
        return error_response(
            400, 'Both "from" and "to" date parameters are required. Format: YYYY-MM-DD'
        )

    try:
        from_date = parse_date_param(from_param)
        to_date = parse_date_param(to_param)
    except DateValidationError as e:
        return error_response(400, str(e))

    if from_date > to_date:
        return error_response(400, '"from" date must be before or equal to "to" date')

    try:
        return await collect_history(from_date, to_date)
    except Exception as e:
        logger.exception("Error processing history %s .. %s", from_date, to_date)
        return error_response(500, "Error processing historical data", str(e))


@app.post("/api/extract-manual", response_model=BulletinResponse)
async def extract_manual_pdf(file: UploadFile = File(...)):
    """
    Manually upload and parse a bulletin PDF

    Useful for archived bulletins or testing with specific documents.
    """
    if file.content_type != 'application/pdf':
        return error_response(400, "File must be PDF")

    content = await file.read()
    try:
        return parse_bulletin(
            content,
            source=f"Manual: {file.filename}",
            fallback_date=datetime.now().strftime("%Y-%m-%d"),
        )
    except Exception as e:
        logger.exception("Error processing uploaded PDF %s", file.filename)
        return error_response(500, "Error processing the PDF", str(e))


@app.get("/")
def root():
    """Health check endpoint"""
    return {"message": "Corabastos Price Scraper is Running"}


# ==============================================================================
# DEPLOYMENT
# ==============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
