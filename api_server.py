"""
FastAPI wrapper for the gluten / milk protein classifier.

Endpoints:
- GET  /health    : readiness check
- GET  /ping      : routing check with server time
- POST /classify  : classify a product barcode
- GET  /history   : recent scans, newest first
- GET  /advisory  : relay readiness (and whether a model key is configured)
- POST /advisory  : advisory relay used by the classifier's second opinion

Run locally:
    uvicorn api_server:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from safescan import (
    ClassificationOrchestrator,
    ErrorKind,
    Settings,
    build_orchestrator,
)
from safescan.relay import OpenAIAdvisor

settings = Settings.from_env()

app = FastAPI(
    title="Safescan API",
    description="Gluten and milk protein checks for packaged food (OpenFoodFacts + advisory model).",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.allow_origins),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=86400,
)


class ClassifyRequest(BaseModel):
    code: str = Field(..., description="Product EAN/UPC barcode")
    lang: Optional[str] = Field(None, description="Note language (en, sk). Defaults to server setting.")

    @field_validator("code")
    @classmethod
    def _strip_code(cls, v: str) -> str:
        return v.strip()


class VerdictModel(BaseModel):
    status: str
    notes: List[str]
    source: str


class ClassifyResponse(BaseModel):
    code: str
    product: Dict
    verdict: VerdictModel
    advisory_consulted: bool


class AdvisoryPayload(BaseModel):
    code: str = ""
    name: str = ""
    ingredients: str = ""
    allergens: str = ""
    lang: str = "en"


ERROR_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.TRANSPORT: 502,
    ErrorKind.INVALID_CODE: 422,
}


@lru_cache(maxsize=1)
def get_orchestrator() -> ClassificationOrchestrator:
    return build_orchestrator(settings)


@lru_cache(maxsize=1)
def get_advisor() -> OpenAIAdvisor:
    return OpenAIAdvisor(settings.openai_api_key, model=settings.openai_model)


def _product_dict(product, lang: Optional[str] = None) -> Dict:
    """Serialize ProductRecord into a JSON-friendly dict."""
    last_modified = product.last_modified
    return {
        "code": product.code,
        "name": product.display_name,
        "brand": product.brand,
        "allergens_tags": list(product.allergens_tags),
        "traces": product.traces_text(),
        "ingredients_text": product.ingredient_text((lang or settings.lang,)),
        "last_modified": last_modified.isoformat() if last_modified else None,
    }


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/ping")
def ping() -> Dict[str, object]:
    return {"ok": True, "time": datetime.now(timezone.utc).isoformat()}


@app.post("/classify", response_model=ClassifyResponse)
async def classify(
    request: ClassifyRequest,
    orchestrator: ClassificationOrchestrator = Depends(get_orchestrator),
):
    outcome = await orchestrator.classify(request.code, lang=request.lang)
    if outcome.error is not None and outcome.verdict is not None:
        # Advisory-only verdict for a code the food database does not know.
        return JSONResponse(
            status_code=ERROR_STATUS[outcome.error],
            content={
                "code": outcome.code,
                "error": outcome.error.value,
                "message": outcome.message,
                "verdict": outcome.verdict.to_dict(),
                "advisory_consulted": outcome.advisory_consulted,
            },
        )
    if outcome.error is not None:
        raise HTTPException(status_code=ERROR_STATUS[outcome.error], detail=outcome.message)

    return {
        "code": outcome.code,
        "product": _product_dict(outcome.product, request.lang),
        "verdict": outcome.verdict.to_dict(),
        "advisory_consulted": outcome.advisory_consulted,
    }


@app.get("/history")
def history(orchestrator: ClassificationOrchestrator = Depends(get_orchestrator)) -> List[Dict]:
    if orchestrator.history is None:
        return []
    return [entry.to_dict() for entry in orchestrator.history.entries()]


@app.get("/advisory")
def advisory_ready(advisor: OpenAIAdvisor = Depends(get_advisor)) -> Dict[str, object]:
    return {"ok": True, "msg": "advisory ready", "has_key": advisor.enabled}


@app.post("/advisory")
def advisory(payload: AdvisoryPayload, advisor: OpenAIAdvisor = Depends(get_advisor)) -> Dict:
    return advisor.evaluate(payload.model_dump())


if __name__ == "__main__":
    uvicorn.run("api_server:app", host="0.0.0.0", port=8000, reload=False)
