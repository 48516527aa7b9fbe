import logging
from typing import Optional

from fastapi import FastAPI, UploadFile, File, HTTPException

from .errors import NormalizerError
from .models import NormalizeResponse, HealthResponse, ReportItem
from .normalize import normalize_export_bytes
from .rules import NormalizerConfig

logger = logging.getLogger(__name__)

app = FastAPI(
    title="mic-normalizer",
    description="Deterministic reshaping of instrument susceptibility exports into CSV",
    version="0.1.0",
)


@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}


@app.post("/normalize", response_model=NormalizeResponse)
async def normalize_export(
    file: UploadFile = File(...),
    encoding: Optional[str] = None,
    anchor_name: Optional[str] = None,
    strict_qualifiers: bool = False,
):
    config = NormalizerConfig(
        encoding=encoding,
        anchor_name=anchor_name,
        strict_qualifiers=strict_qualifiers,
    )

    raw = await file.read()
    if not raw:
        raise HTTPException(status_code=422, detail="Empty upload")

    try:
        return normalize_export_bytes(raw, config)
    except NormalizerError as exc:
        logger.warning("rejected %s: %s", file.filename, exc)
        item = ReportItem(**exc.to_report_item())
        raise HTTPException(status_code=422, detail=item.model_dump()) from exc
