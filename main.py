import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from extraction.kinds import KINDS
from routers import ocr_router
from settings import load_settings


def create_app() -> FastAPI:
    settings = load_settings()
    logging.basicConfig(level=settings.log_level,
                        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    app = FastAPI(title="Gauge Reading OCR API", version="1.0.0")

    # CORS (tweak as needed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(ocr_router.router, prefix="/ocr", tags=["ocr"])

    @app.get("/health")
    def health():
        return {"status": "ok", "backend": settings.ocr_backend, "kinds": list(KINDS)}

    return app

app = create_app()

# Run with: uvicorn main:app --host 127.0.0.1 --port 8080 --reload
