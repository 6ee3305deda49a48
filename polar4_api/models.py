from __future__ import annotations

from typing import Any, Dict, NamedTuple, Optional
from pydantic import BaseModel, Field

from .rules import POLAR_DESCRIPTIONS


class PostcodeRecord(NamedTuple):
    canonical_key: str
    display_form: str
    quintile: int


class LookupResponse(BaseModel):
    success: bool = True
    postcode: str = Field(examples=["AB10 1AA"])
    polar4: int = Field(examples=[2])
    polar_description: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: Optional[str] = None
    searched: Optional[str] = None
    retryAfter: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: str
    environment: str
    uptime: Optional[float] = None
    postcodes_loaded: Optional[int] = None
    runtime: Optional[str] = None


class ReadyResponse(BaseModel):
    status: str
    postcodes_loaded: Optional[int] = None
    message: Optional[str] = None


class ApiInfo(BaseModel):
    name: str = "Postcode POLAR4 API"
    version: str
    description: str = "Lookup POLAR4 participation quintiles by UK postcode"
    endpoints: Dict[str, str]
    example: Dict[str, Any]
    polar_quintiles: Dict[int, str] = Field(default_factory=lambda: dict(POLAR_DESCRIPTIONS))
