from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from extraction.kinds import KINDS
from services.errors import CredentialsError, ImageDecodeError, ImageFetchError, OcrProviderError
from services.ocr_service import run_gauge_ocr, run_token_replay

router = APIRouter()


class TokenPage(BaseModel):
    name: Optional[str] = None
    full_text: str = ""
    tokens: List[dict] = Field(default_factory=list)
    width: Optional[float] = None
    height: Optional[float] = None


class TokenReplayRequest(BaseModel):
    kind: str
    pages: List[TokenPage]
    reference_value: Optional[float] = None


def _check_kind(kind: str) -> str:
    k = (kind or "").strip().lower()
    if k not in KINDS:
        raise HTTPException(status_code=400, detail=f"Invalid 'kind'. Expected one of: {', '.join(KINDS)}.")
    return k


@router.post("/read-gauge")
async def read_gauge(
    kind: str = Form(...),
    # One of: file upload, remote URL, or a path on this server
    file: Optional[UploadFile] = File(default=None),
    image_url: Optional[str] = Form(default=None),
    image_path: Optional[str] = Form(default=None),

    reference_value: Optional[float] = Form(default=None),
    asset_id: Optional[str] = Form(default=None),
    backend: Optional[str] = Form(default=None),  # "vision" | "tesseract"
):
    """
    POST /ocr/read-gauge
    - multipart/form-data with kind=horimetro|abastecimento|odometro and either
      file=<image>, image_url=<http(s) url> or image_path=<path on server>
    - value is null when nothing plausible was found; external failures are 4xx/5xx.
    """
    kind = _check_kind(kind)
    if not file and not image_url and not image_path:
        raise HTTPException(status_code=400, detail="Provide 'file', 'image_url' or 'image_path'.")

    content = await file.read() if file else None
    try:
        result = await run_in_threadpool(
            run_gauge_ocr,
            kind=kind,
            content=content,
            image_url=image_url,
            image_path=image_path,
            reference_value=reference_value,
            asset_id=asset_id,
            backend=backend,
        )
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ImageDecodeError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except (ImageFetchError, OcrProviderError) as e:
        raise HTTPException(status_code=502, detail=str(e))
    except CredentialsError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return JSONResponse(content=result)


@router.post("/read-tokens")
async def read_tokens(req: TokenReplayRequest):
    """POST /ocr/read-tokens: run the extraction engine on saved OCR word boxes."""
    kind = _check_kind(req.kind)
    pages = [p.model_dump() for p in req.pages]
    result = run_token_replay(kind, pages, reference_value=req.reference_value)
    return JSONResponse(content=result)
