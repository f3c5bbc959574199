"""
AI extraction client (OpenAI-compatible chat completions endpoint)

Sends raw scraped content plus an extraction instruction, and parses the
answer into either property candidates or a UI specification.
"""
import html
import json
import logging
import re
import time
from typing import Dict, List, Optional, Any, Tuple

import httpx
from pydantic import ValidationError

from propscrape.core.config import settings
from propscrape.core.exceptions import AIExtractionError, ExternalServiceError
from propscrape.models.extraction import (
    AIExtractionResponse, ExtractedCandidate, PropertiesExtraction, UISpecExtraction
)
from propscrape.models.search import SearchParameters
from .base import BaseCapabilityClient

logger = logging.getLogger(__name__)

# Keeps prompts within the model's context window
MAX_CONTENT_CHARS = 100_000

EXTRACTION_SYSTEM_PROMPT = """You are an assistant specialized in extracting structured property data from raw web scraping results.

TASK: Extract commercial property listings from raw scraped content (markdown, HTML or JSON) and return structured JSON.

PROPERTY SCHEMA:
{
  "title": string (required),
  "description": string (required),
  "location": string (required),
  "price"?: {"amount": number, "currency": "INR" | "USD" | "EUR", "period": "monthly" | "yearly" | "one-time"},
  "size"?: {"area": number, "unit": "sqft" | "seats"},
  "amenities"?: string[],
  "features"?: {"furnished"?: boolean, "parking"?: boolean, "wifi"?: boolean, "ac"?: boolean,
                "security"?: boolean, "cafeteria"?: boolean, "elevator"?: boolean,
                "powerBackup"?: boolean, "conferenceRoom"?: boolean},
  "contact"?: {"phone"?: string, "email"?: string, "contactPerson"?: string},
  "images"?: string[] (absolute URLs),
  "availability"?: string
}

GUIDELINES:
- title, description and location must always be present
- If price is "Contact for pricing" or similar, omit the price object
- Use "seats" as the size unit for coworking spaces, otherwise sqft
- Omit optional fields rather than guessing
- Extract each listing as a separate object

OUTPUT FORMAT:
{
  "properties": [...],
  "metadata": {
    "confidence": 0.0-1.0,
    "warnings": ["..."],
    "fieldsExtracted": ["title", "..."],
    "fieldsMissing": ["price", "..."]
  }
}

Only extract data that is clearly present in the source material."""


def select_extraction_content(raw_payload: Any) -> Tuple[str, str]:
    """Pick the most useful section of a raw payload; returns (method, text)"""
    if isinstance(raw_payload, str):
        return ("html" if "<html" in raw_payload else "markdown"), raw_payload

    if isinstance(raw_payload, list):
        sections = [select_extraction_content(page) for page in raw_payload if page]
        methods = {method for method, _ in sections}
        method = methods.pop() if len(methods) == 1 else "mixed"
        return method, "\n\n---\n\n".join(text for _, text in sections)

    if isinstance(raw_payload, dict):
        if raw_payload.get("markdown"):
            return "markdown", raw_payload["markdown"]
        if raw_payload.get("html"):
            return "html", raw_payload["html"]
        if raw_payload.get("json"):
            return "json", json.dumps(raw_payload["json"], default=str)
        return "mixed", json.dumps(raw_payload, default=str)

    return "mixed", str(raw_payload)


def _extract_json_text(content: str) -> str:
    content_match = re.search(r'<content>([\s\S]*?)</content>', content)
    if content_match:
        return html.unescape(content_match.group(1).strip())

    stripped = content.strip()
    if stripped.startswith(('{', '[')):
        return stripped

    fenced_match = re.search(r'```(?:json)?\s*([\[{][\s\S]*?[\]}])\s*```', content)
    if fenced_match:
        return fenced_match.group(1)

    object_match = re.search(r'\{[\s\S]*\}', content)
    if object_match:
        return object_match.group(0)

    return content


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, str)]


def _candidate_from(item: Dict[str, Any], envelope: Dict[str, Any]) -> ExtractedCandidate:
    data = dict(item)
    # Per-item metadata wins over the response-level envelope
    item_meta = data.pop("metadata", None)
    item_meta = dict(item_meta) if isinstance(item_meta, dict) else {}
    if "confidence" in data and not isinstance(data["confidence"], dict):
        item_meta.setdefault("confidence", data.pop("confidence"))

    def pick(key: str):
        value = item_meta.get(key)
        return envelope.get(key) if value is None else value

    try:
        confidence = min(1.0, max(0.0, float(pick("confidence"))))
    except (TypeError, ValueError):
        confidence = 0.5

    return ExtractedCandidate(
        data=data,
        confidence=confidence,
        warnings=_string_list(pick("warnings")),
        fields_extracted=_string_list(pick("fieldsExtracted")),
        fields_missing=_string_list(pick("fieldsMissing")),
    )


def _completion_text(completion: Any) -> Optional[str]:
    if not isinstance(completion, dict):
        return None
    choices = completion.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    text = message.get("content") if isinstance(message, dict) else None
    return text if isinstance(text, str) else None


def parse_extraction_content(content: str):
    """Parse completion text into a PropertiesExtraction or UISpecExtraction"""
    json_text = _extract_json_text(content)
    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise AIExtractionError(f"Failed to parse AI response as structured data: {e}") from e

    if isinstance(parsed, list):
        parsed = {"properties": parsed}

    if not isinstance(parsed, dict):
        raise AIExtractionError(f"Unexpected AI response type: {type(parsed).__name__}")

    if "component" in parsed or "components" in parsed or "uiSpec" in parsed:
        spec = parsed.get("uiSpec") if isinstance(parsed.get("uiSpec"), dict) else parsed
        component = parsed.get("component")
        component_type = component.get("component") if isinstance(component, dict) else None
        if not isinstance(component_type, str):
            component_type = None
        return UISpecExtraction(spec=spec, component_type=component_type)

    properties = parsed.get("properties")
    if properties is None:
        raise AIExtractionError("AI response contains neither properties nor a UI specification")
    if not isinstance(properties, list):
        raise AIExtractionError("AI response 'properties' is not a list")

    envelope = parsed.get("metadata")
    if not isinstance(envelope, dict):
        envelope = {}
    try:
        candidates = [
            _candidate_from(item, envelope)
            for item in properties
            if isinstance(item, dict)
        ]
        return PropertiesExtraction(candidates=candidates)
    except (ValidationError, TypeError, AttributeError) as e:
        raise AIExtractionError(f"AI response properties could not be read: {e}") from e


class AIExtractionClient(BaseCapabilityClient):
    """Client for the secondary (AI) extraction capability"""

    service_name = "ai-extraction"

    def __init__(self, api_key: str, base_url: str, model: str,
                 timeout_seconds: float = 60.0, max_tokens: int = 8000,
                 temperature: float = 0.3,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(api_key, base_url, timeout=timeout_seconds, transport=transport)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    def build_messages(self, content: str, method: str, source_url: str,
                       hints: Optional[str] = None,
                       search_params: Optional[SearchParameters] = None) -> List[Dict[str, str]]:
        prompt = f"Extract property data from the following {method} content scraped from: {source_url}\n\n"
        if hints:
            prompt += f"User hints: {hints}\n\n"
        if search_params:
            prompt += f"Original search parameters: {search_params.model_dump_json(exclude_none=True)}\n\n"
        prompt += (
            f"Raw data to process:\n{content}\n\n"
            "Please extract all property listings found in this data and format them according to the schema."
        )
        return [
            {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

    async def extract(self, raw_payload: Any, source_url: str, hints: Optional[str] = None,
                      search_params: Optional[SearchParameters] = None) -> AIExtractionResponse:
        """Single blocking extraction call; raises AIExtractionError on any failure"""
        start = time.monotonic()
        method, content = select_extraction_content(raw_payload)

        warnings = []
        if not content.strip():
            raise AIExtractionError("Raw payload has no content to extract from")
        if len(content) > MAX_CONTENT_CHARS:
            warnings.append(f"Content truncated from {len(content)} to {MAX_CONTENT_CHARS} characters")
            content = content[:MAX_CONTENT_CHARS]

        body = {
            "model": self.model,
            "messages": self.build_messages(content, method, source_url, hints, search_params),
            "stream": False,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

        logger.info(f"Requesting AI extraction for {source_url} ({method}, {len(content)} chars)")
        try:
            completion = await self._request("POST", "/chat/completions", json=body)
        except ExternalServiceError as e:
            raise AIExtractionError(f"AI extraction request failed: {e}") from e

        text = _completion_text(completion)
        if not text:
            raise AIExtractionError("No content received from AI extraction capability")

        extraction = parse_extraction_content(text)
        elapsed_ms = int((time.monotonic() - start) * 1000)

        usage = completion.get("usage") if isinstance(completion, dict) else None
        tokens_used = usage.get("total_tokens") if isinstance(usage, dict) else None
        model = completion.get("model") if isinstance(completion, dict) else None

        logger.info(f"AI extraction for {source_url} returned {extraction.kind} in {elapsed_ms}ms")
        try:
            return AIExtractionResponse(
                content=extraction,
                model=model if isinstance(model, str) and model else self.model,
                tokens_used=tokens_used if isinstance(tokens_used, int) else 0,
                processing_time_ms=elapsed_ms,
                warnings=warnings,
                extraction_method=method,
            )
        except ValidationError as e:
            raise AIExtractionError(f"AI response could not be read: {e}") from e


def get_ai_extraction_client() -> AIExtractionClient:
    """Build a client from settings; raises ConfigurationError without credentials"""
    return AIExtractionClient(
        api_key=settings.AI_EXTRACTION_API_KEY,
        base_url=settings.AI_EXTRACTION_BASE_URL,
        model=settings.AI_EXTRACTION_MODEL,
        timeout_seconds=settings.AI_EXTRACTION_TIMEOUT_SECONDS,
        max_tokens=settings.AI_EXTRACTION_MAX_TOKENS,
        temperature=settings.AI_EXTRACTION_TEMPERATURE,
    )
