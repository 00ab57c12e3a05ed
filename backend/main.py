"""FastAPI application for Cuentas statement imports."""

import logging

from fastapi import FastAPI, File, Form, Header, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from backend.config import settings
from backend.models import (
    ConfirmCsvRequest,
    ConfirmPdfRequest,
    CsvFilters,
    CsvImportPreview,
    ImportSummary,
    PdfImportPreview,
)
from backend.parsers.validation import ExtractionError, FormatError
from backend.services.statement_import import (
    confirm_csv_import,
    confirm_pdf_import,
    preview_csv,
    preview_pdf,
)

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

CSV_CONTENT_TYPES = {"text/csv", "application/csv", "application/vnd.ms-excel", "text/plain"}

app = FastAPI(
    title="Cuentas",
    description="Bank statement import: parse CSV exports and card statement PDFs, review, then persist",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup():
    """Initialize on startup."""
    settings.ensure_directories()
    settings.log_config()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


async def _read_upload(file: UploadFile, max_bytes: int, max_mb: int) -> bytes:
    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(contents) > max_bytes:
        raise HTTPException(status_code=400, detail=f"File too large (max {max_mb}MB)")
    return contents


@app.post("/import/csv", response_model=CsvImportPreview)
async def import_csv_preview(
    file: UploadFile = File(...),
    filters: str | None = Form(None),
    x_user_id: str = Header(...),
):
    """Parse a CSV export and return the rows to review."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    is_csv_name = file.filename.lower().endswith(".csv")
    if not is_csv_name and file.content_type not in CSV_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Only CSV files are allowed")

    parsed_filters = None
    if filters:
        try:
            parsed_filters = CsvFilters.model_validate_json(filters)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=f"Invalid filters: {e}")

    contents = await _read_upload(file, settings.max_csv_upload_bytes, settings.max_csv_upload_mb)

    try:
        return preview_csv(contents, parsed_filters, x_user_id)
    except FormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("CSV preview failed")
        raise HTTPException(status_code=500, detail=f"Error processing file: {str(e)}")


@app.post("/import/csv/confirm", response_model=ImportSummary)
async def import_csv_confirm(request: ConfirmCsvRequest, x_user_id: str = Header(...)):
    """Persist reviewed CSV rows."""
    try:
        return confirm_csv_import(request, x_user_id)
    except Exception as e:
        logger.exception("CSV import failed")
        raise HTTPException(status_code=500, detail=f"Import error: {str(e)}")


@app.post("/import/pdf", response_model=PdfImportPreview)
async def import_pdf_preview(file: UploadFile = File(...), x_user_id: str = Header(...)):
    """Parse a bank statement PDF and return the rows to review."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    if not file.filename.lower().endswith(".pdf") and file.content_type != "application/pdf":
        raise HTTPException(status_code=400, detail="Only PDF files are allowed")

    contents = await _read_upload(file, settings.max_pdf_upload_bytes, settings.max_pdf_upload_mb)

    try:
        return preview_pdf(contents, x_user_id)
    except ExtractionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("PDF preview failed")
        raise HTTPException(status_code=500, detail=f"Error processing file: {str(e)}")


@app.post("/import/pdf/confirm", response_model=ImportSummary)
async def import_pdf_confirm(request: ConfirmPdfRequest, x_user_id: str = Header(...)):
    """Persist reviewed statement rows on the statement's card."""
    try:
        return confirm_pdf_import(request, x_user_id)
    except Exception as e:
        logger.exception("PDF import failed")
        raise HTTPException(status_code=500, detail=f"Import error: {str(e)}")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "backend.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.dev_mode,
    )
