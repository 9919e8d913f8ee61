"""Pydantic models for the export document wire format."""

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, StrictInt


class WireMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    version: Union[str, StrictInt]
    exported_at: Optional[str] = None
    exported_on: Optional[int] = None  # epoch milliseconds, older exports


class WireDocument(BaseModel):
    meta: WireMeta
    data: Dict[str, List[Dict[str, Any]]]


class WireEnvelope(BaseModel):
    """Outer {"db": [document]} wrapper kept for older importers."""
    db: List[WireDocument] = Field(min_length=1)


class WireProblem(BaseModel):
    message: str
    help: str = ""
    context: Optional[str] = None
    table: Optional[str] = None
    identity: Dict[str, Any] = Field(default_factory=dict)
    reason: Optional[str] = None


class ImportResponse(BaseModel):
    db: List[Dict[str, Any]] = Field(default_factory=list)
    problems: List[WireProblem] = Field(default_factory=list)
