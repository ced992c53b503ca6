import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import Response

from pagegen.config import load_settings
from pagegen.schemas import GenerateRequest
from pagegen.services.generate import GenerateOptions, generate

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)
settings = load_settings()

app = FastAPI(title="pagegen")


@app.get("/health")
def health() -> dict:
    return {
        "ok": True,
        "version": os.getenv("GIT_COMMIT_SHA") or os.getenv("RENDER_GIT_COMMIT") or "unknown",
    }


@app.post("/generate")
def generate_endpoint(payload: GenerateRequest, x_internal_key: str = Header(default="", alias="x-internal-key")) -> Response:
    if x_internal_key != settings.INTERNAL_API_KEY:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        pdf = generate(
            template=payload.template,
            inputs=payload.inputs,
            font=payload.font,
            options=GenerateOptions.from_settings(settings),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("/generate", extra={"records": len(payload.inputs), "bytes": len(pdf)})
    return Response(content=pdf, media_type="application/pdf")
