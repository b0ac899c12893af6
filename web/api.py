"""
IP Threat Analyzer Web API
FastAPI backend for the IP upload / results dashboard
"""

import logging
import os
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, field_validator

from ip_threat_analyzer import __version__
from ip_threat_analyzer.analyzer import IpAnalyzer
from ip_threat_analyzer.config import AnalyzerConfig
from ip_threat_analyzer.output import threat_stats

logger = logging.getLogger(__name__)

INVALID_INPUT_MESSAGE = "Please provide an array of IP addresses."

app = FastAPI(
    title="IP Threat Analyzer",
    description="Geo-location and threat reputation for IPv4 address lists",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("IP_THREAT_CORS_ORIGINS", "*").split(","),
    allow_methods=["*"],
    allow_headers=["*"],
)


class AnalyzeRequest(BaseModel):
    ipAddresses: list[str]

    @field_validator("ipAddresses")
    @classmethod
    def _non_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError(INVALID_INPUT_MESSAGE)
        return v


@lru_cache(maxsize=1)
def get_analyzer() -> IpAnalyzer:
    return IpAnalyzer.from_config(AnalyzerConfig.from_env())


@app.exception_handler(RequestValidationError)
async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed or empty bodies answer 400 with a single error string."""
    return JSONResponse(status_code=400, content={"error": INVALID_INPUT_MESSAGE})


@app.get("/api/health")
async def health():
    """Health check endpoint"""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.post("/api/analyze-ips")
def analyze_ips(request: AnalyzeRequest, analyzer: IpAnalyzer = Depends(get_analyzer)) -> list[dict[str, Any]]:
    """Analyze a list of IPs; one result per input, same order."""
    logger.info("Analyzing %d IP addresses", len(request.ipAddresses))
    return [r.to_dict() for r in analyzer.analyze(request.ipAddresses)]


@app.post("/api/summary")
def analyze_summary(request: AnalyzeRequest, analyzer: IpAnalyzer = Depends(get_analyzer)) -> dict[str, Any]:
    """Analyze IPs and include dashboard counters."""
    results = [r.to_dict() for r in analyzer.analyze(request.ipAddresses)]
    return {"summary": threat_stats(results), "results": results}


# Serve the built dashboard when present
static_path = Path(__file__).parent / "static"
if static_path.exists():
    app.mount("/static", StaticFiles(directory=static_path), name="static")

    @app.get("/")
    async def root():
        return FileResponse(static_path / "index.html")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=AnalyzerConfig.from_env().port)
