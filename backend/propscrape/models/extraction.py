"""
Response shapes of the AI extraction capability.

The capability answers either with property candidates or with a declarative
UI specification. The two are modelled as a discriminated union on ``kind`` so
callers branch on the variant instead of probing optional fields.
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union, Literal, Annotated
from enum import Enum


class ConfidenceBand(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ExtractedCandidate(BaseModel):
    """One record-like object returned by the AI capability, before coercion"""
    data: Dict[str, Any]
    confidence: float = Field(0.5, ge=0, le=1)
    warnings: List[str] = []
    fields_extracted: List[str] = []
    fields_missing: List[str] = []


class PropertiesExtraction(BaseModel):
    kind: Literal["properties"] = "properties"
    candidates: List[ExtractedCandidate] = []


class UISpecExtraction(BaseModel):
    kind: Literal["ui_spec"] = "ui_spec"
    spec: Dict[str, Any]
    component_type: Optional[str] = None


ExtractionContent = Annotated[
    Union[PropertiesExtraction, UISpecExtraction],
    Field(discriminator="kind"),
]


class AIExtractionResponse(BaseModel):
    content: ExtractionContent
    model: str = "unknown"
    tokens_used: int = 0
    processing_time_ms: int = 0
    warnings: List[str] = []
    extraction_method: str = "mixed"
