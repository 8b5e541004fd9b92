"""Gemini-backed analysis service.

Every AI feature is expressed as a request dataclass carrying a ``kind`` tag.
:meth:`AiService.run` dispatches each kind to exactly one handler, and each
handler returns a typed result or raises an :class:`AIServiceError`
subclass.  Without an API key the service is disabled and every request
raises :class:`AIDisabledError` before any network access.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence
import json
import logging
import re

from google import genai
from google.genai import types

from .constants import COMMON_DATA_KEYS, NON_PROXY_KEYS, PROXY_PRIORITY
from .errors import AIDisabledError, AIServiceError
from .models import DataPoint, Microfossil, PaleoEvent, Section

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
MAX_EVENT_POINTS = 500
MIN_EVENT_POINTS = 5

SEARCH_KEYWORDS = ("search", "find studies", "what is new on", "latest research", "recent articles")

ANALYSIS_INSTRUCTION = (
    "You are a world-class paleoceanographer. Analyze the provided sediment section data to "
    "answer the user's question. Be concise, scientific, and refer to specific data points or "
    "trends where possible. If the user asks for recent information or studies, use your "
    "search tool."
)

SUMMARY_INSTRUCTION = (
    "You are a paleoceanography expert. Your task is to provide a concise, integrated scientific "
    "summary of a sediment section. Focus on key findings, trends, and potential climatic "
    "implications suggested by the combined datasets. If data for a section is missing or "
    "sparse, note that. Structure your response with a brief overview followed by key bullet "
    "points."
)

AGE_MODEL_INSTRUCTION = """You are a highly skilled paleoceanographic data scientist specializing in age-depth modeling. Your task is to create a robust age model for a set of sediment sections.
You will be given sections containing data points (with depth and potentially climate proxies like d18O) and a list of stratigraphic tie-points (age control points).

Your instructions are:
1. Establish an initial age-depth relationship using the provided tie-points for each section.
2. If a key climate proxy (like delta18O) is present in the data, do not just perform simple linear interpolation. Analyze the trends in the proxy data between the tie-points and adjust the calculated ages to reflect known paleoclimatic patterns. Condensed proxy values may represent slower sedimentation, expanded sections faster sedimentation.
3. Perform linear interpolation/extrapolation only if no useful proxy data is available or for depths outside the tie-point range.
4. If a section has fewer than two tie-points, return the section with no 'age' property in its data points.
5. Return ONLY a JSON object with a root property 'sections', an array of every section you processed.
6. Each returned section keeps its original 'id' and 'name'; its 'dataPoints' contain only the original 'depth' and the calculated 'age'."""

EVENTS_INSTRUCTION = (
    "You are a paleoclimatology expert. Your task is to analyze a given time series data (age in "
    "thousands of years 'ka' vs. a proxy value) and identify significant named paleo-events. "
    "These could include Heinrich Stadials, Dansgaard-Oeschger events, Bond events, the Younger "
    "Dryas, Bolling-Allerod, etc. For each event, provide its name, its start and end age in ka, "
    "and a brief scientific description of its significance. Only identify events that are "
    "reasonably supported by the data trends."
)

FOSSIL_IMAGE_PROMPT = (
    "You are a micropaleontologist. Please identify the microfossil in this image. Provide a "
    "probable identification, describe its key morphological features, and mention its typical "
    "paleoecological significance. Format your response clearly with the following headings:\n"
    "### Identification\n"
    "### Morphological Description\n"
    "### Paleoecological Significance"
)

AGE_MODEL_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "sections": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "id": {"type": "STRING"},
                    "name": {"type": "STRING"},
                    "dataPoints": {
                        "type": "ARRAY",
                        "items": {
                            "type": "OBJECT",
                            "properties": {
                                "depth": {"type": "NUMBER"},
                                "age": {"type": "NUMBER", "nullable": True},
                            },
                            "required": ["depth"],
                        },
                    },
                },
                "required": ["id", "name", "dataPoints"],
            },
        },
    },
    "required": ["sections"],
}

EVENTS_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "eventName": {"type": "STRING", "description": "The scientific name of the event."},
            "startAge": {"type": "NUMBER", "description": "The starting age of the event in ka."},
            "endAge": {"type": "NUMBER", "description": "The ending age of the event in ka."},
            "description": {"type": "STRING", "description": "A brief scientific description of the event."},
        },
        "required": ["eventName", "startAge", "endAge", "description"],
    },
}


# --------------------------------------------------------------------------
# Request kinds
# --------------------------------------------------------------------------

@dataclass
class AnalysisRequest:
    section: Section
    question: str
    kind: str = field(default="analysis", init=False)


@dataclass
class SummaryRequest:
    section: Section
    microfossils: Sequence[Microfossil] = ()
    kind: str = field(default="summary", init=False)


@dataclass
class HeaderMappingRequest:
    headers: Sequence[str]
    kind: str = field(default="header_mapping", init=False)


@dataclass
class AgeModelRequest:
    payload: Dict[str, Any]
    kind: str = field(default="age_model", init=False)


@dataclass
class PaleoEventsRequest:
    data_points: Sequence[DataPoint]
    kind: str = field(default="paleo_events", init=False)


@dataclass
class FossilImageRequest:
    image: bytes
    mime_type: str
    kind: str = field(default="fossil_image", init=False)


# --------------------------------------------------------------------------
# Prompt helpers
# --------------------------------------------------------------------------

def format_section_context(section: Section) -> str:
    if section.data_points:
        headers = list(section.data_points[0].keys())
        data_summary = (
            f"The section has a data series of {len(section.data_points)} points "
            f"with columns: {', '.join(headers)}."
        )
    else:
        data_summary = "No data points provided for this section."
    return (
        "Section Data:\n"
        f"- Core ID: {section.core_id}, Section Name: {section.name}\n"
        f"- Depth: {section.section_depth} cmbsf\n"
        f"- Age/Epoch: {section.age_range}, {section.epoch}, {section.geological_period} period\n"
        f"- {data_summary}"
    )


def wants_search(question: str) -> bool:
    q = question.lower()
    return any(k in q for k in SEARCH_KEYWORDS)


def _drop_empty(obj: Any) -> Any:
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            v = _drop_empty(v)
            if v is None or v == "" or (isinstance(v, (list, dict)) and not v):
                continue
            out[k] = v
        return out
    if isinstance(obj, list):
        return [_drop_empty(v) for v in obj]
    return obj


def summary_prompt(section: Section, microfossils: Sequence[Microfossil]) -> str:
    by_id = {f.id: f for f in microfossils}
    records = []
    for r in section.microfossil_records:
        fossil = by_id.get(r.fossil_id)
        records.append({
            "species": fossil.display_name if fossil else r.fossil_id,
            "abundance": r.abundance,
            "preservation": r.preservation,
            "observations": r.observations,
        })
    if section.data_points:
        series: Any = {
            "rowCount": len(section.data_points),
            "columns": list(section.data_points[0].keys()),
            "samplePoints": section.data_points[:3],
        }
    else:
        series = "Not provided"
    data = {
        "metadata": {
            "coreId": section.core_id,
            "sectionName": section.name,
            "ageRange": section.age_range,
            "epoch": section.epoch,
            "geologicalPeriod": section.geological_period,
        },
        "labAnalysis": section.lab_analysis,
        "fossilRecords": records,
        "dataSeriesSummary": series,
    }
    return (
        "Please generate a scientific summary for the following sediment section data:\n"
        + json.dumps(_drop_empty(data), indent=2)
    )


def header_mapping_prompt(headers: Sequence[str]) -> str:
    known = ", ".join(COMMON_DATA_KEYS)
    return (
        "You are an expert data processor for paleoceanography. Your task is to map CSV headers "
        "to a standard set of keys.\n\n"
        f"Here are the standard keys:\n{known}\n\n"
        f"Here are the headers from the user's CSV file:\n{', '.join(headers)}\n\n"
        "Please provide a mapping for each header. If a header clearly corresponds to one of the "
        "standard keys, provide that key. If a header does not match any standard key or is "
        "ambiguous, map it to null."
    )


def header_mapping_schema(headers: Sequence[str]) -> Dict[str, Any]:
    known = ", ".join(COMMON_DATA_KEYS)
    props = {
        h: {
            "type": "STRING",
            "nullable": True,
            "description": f"The mapped key for '{h}'. Should be one of [{known}] or null.",
        }
        for h in headers
    }
    return {
        "type": "OBJECT",
        "properties": {"mapping": {"type": "OBJECT", "properties": props}},
        "required": ["mapping"],
    }


def pick_event_proxy(point: DataPoint) -> str:
    for proxy in PROXY_PRIORITY:
        if point.get(proxy) is not None:
            return proxy
    for key in point:
        if key not in NON_PROXY_KEYS:
            return key
    return "value"


def parse_json_text(text: Optional[str]) -> Any:
    """Decode a model reply that should be JSON, tolerating code fences."""
    if not text:
        raise AIServiceError("The AI returned an empty response.")
    cleaned = text.replace("```json", "").replace("```", "").strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AIServiceError(f"The AI returned invalid JSON: {e}") from e


# --------------------------------------------------------------------------
# Service
# --------------------------------------------------------------------------

class AiService:
    """Dispatches request kinds to the Gemini API.

    Pass ``client`` to inject a ready ``genai.Client`` (or a stand-in with the
    same ``models`` interface); otherwise one is built from ``api_key``.
    """

    def __init__(self, api_key: Optional[str] = None, *, client: Any = None, model: str = DEFAULT_MODEL):
        self.model = model
        if client is None and api_key:
            client = genai.Client(api_key=api_key)
        self._client = client
        if self._client is None:
            logger.warning("No Gemini API key configured; AI features are disabled.")
        self._handlers = {
            "analysis": self._handle_analysis,
            "summary": self._handle_summary,
            "header_mapping": self._handle_header_mapping,
            "age_model": self._handle_age_model,
            "paleo_events": self._handle_paleo_events,
            "fossil_image": self._handle_fossil_image,
        }

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def run(self, request: Any) -> Any:
        try:
            handler = self._handlers[request.kind]
        except (AttributeError, KeyError):
            raise TypeError(f"Unsupported AI request: {request!r}") from None
        if self._client is None:
            raise AIDisabledError()
        return handler(request)

    # -- convenience wrappers ------------------------------------------------
    def stream_analysis(self, section: Section, question: str) -> Iterator[str]:
        return self.run(AnalysisRequest(section, question))

    def summarize_section(self, section: Section, microfossils: Sequence[Microfossil] = ()) -> str:
        return self.run(SummaryRequest(section, microfossils))

    def map_headers(self, headers: Sequence[str]) -> Dict[str, Optional[str]]:
        return self.run(HeaderMappingRequest(list(headers)))

    def compute_age_model(self, payload: Dict[str, Any]) -> Any:
        return self.run(AgeModelRequest(payload))

    def detect_paleo_events(self, data_points: Sequence[DataPoint]) -> List[PaleoEvent]:
        return self.run(PaleoEventsRequest(list(data_points)))

    def identify_fossil(self, image: bytes, mime_type: str) -> str:
        return self.run(FossilImageRequest(image, mime_type))

    # -- transport -----------------------------------------------------------
    def _generate(self, contents: Any, config: types.GenerateContentConfig, what: str) -> str:
        try:
            response = self._client.models.generate_content(
                model=self.model, contents=contents, config=config
            )
        except AIServiceError:
            raise
        except Exception as e:
            logger.error("Gemini %s call failed: %s", what, e)
            raise AIServiceError(f"AI {what} error: {e}") from e
        return response.text or ""

    # -- handlers ------------------------------------------------------------
    def _handle_analysis(self, req: AnalysisRequest) -> Iterator[str]:
        prompt = f'{format_section_context(req.section)}\n\nUser Question: "{req.question}"'
        tools = [types.Tool(google_search=types.GoogleSearch())] if wants_search(req.question) else None
        config = types.GenerateContentConfig(
            system_instruction=ANALYSIS_INSTRUCTION,
            temperature=0.5,
            tools=tools,
        )
        try:
            stream = self._client.models.generate_content_stream(
                model=self.model, contents=prompt, config=config
            )
        except Exception as e:
            raise AIServiceError(f"AI analysis error: {e}") from e
        return self._iter_text(stream)

    @staticmethod
    def _iter_text(stream: Any) -> Iterator[str]:
        try:
            for chunk in stream:
                if chunk.text:
                    yield chunk.text
        except AIServiceError:
            raise
        except Exception as e:
            raise AIServiceError(f"AI analysis error: {e}") from e

    def _handle_summary(self, req: SummaryRequest) -> str:
        config = types.GenerateContentConfig(system_instruction=SUMMARY_INSTRUCTION)
        text = self._generate(summary_prompt(req.section, req.microfossils), config, "summary")
        return re.sub(r"[*#]", "", text)

    def _handle_header_mapping(self, req: HeaderMappingRequest) -> Dict[str, Optional[str]]:
        headers = list(req.headers)
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=header_mapping_schema(headers),
        )
        data = parse_json_text(self._generate(header_mapping_prompt(headers), config, "header mapping"))
        mapping = data.get("mapping") if isinstance(data, dict) else None
        if not isinstance(mapping, dict):
            raise AIServiceError("The AI header mapping had no 'mapping' object.")
        out: Dict[str, Optional[str]] = {}
        for h in headers:
            key = mapping.get(h)
            out[h] = key if isinstance(key, str) and key in COMMON_DATA_KEYS else None
        return out

    def _handle_age_model(self, req: AgeModelRequest) -> Any:
        config = types.GenerateContentConfig(
            system_instruction=AGE_MODEL_INSTRUCTION,
            response_mime_type="application/json",
            response_schema=AGE_MODEL_SCHEMA,
            temperature=0.1,
        )
        prompt = f"Here is the data: {json.dumps(req.payload, indent=2)}"
        return parse_json_text(self._generate(prompt, config, "age model"))

    def _handle_paleo_events(self, req: PaleoEventsRequest) -> List[PaleoEvent]:
        aged = [p for p in req.data_points if p.get("age") is not None]
        if len(aged) < MIN_EVENT_POINTS:
            return []
        proxy = pick_event_proxy(aged[0])
        series = [{"age": p.get("age"), "value": p.get(proxy)} for p in aged][:MAX_EVENT_POINTS]
        prompt = (
            "Analyze the following paleoclimate data, where 'age' is in ka (thousands of years ago) "
            f"and 'value' represents the proxy {proxy}. Identify significant paleo-events.\n"
            f"Data:\n{json.dumps(series)}"
        )
        config = types.GenerateContentConfig(
            system_instruction=EVENTS_INSTRUCTION,
            response_mime_type="application/json",
            response_schema=EVENTS_SCHEMA,
            temperature=0.3,
        )
        data = parse_json_text(self._generate(prompt, config, "event detection"))
        if not isinstance(data, list):
            raise AIServiceError("The AI event detection did not return a list.")
        events: List[PaleoEvent] = []
        for item in data:
            try:
                a, b = float(item["startAge"]), float(item["endAge"])
                events.append(PaleoEvent(
                    event_name=str(item["eventName"]),
                    start_age=min(a, b),
                    end_age=max(a, b),
                    description=str(item.get("description", "")),
                ))
            except (KeyError, TypeError, ValueError) as e:
                raise AIServiceError(f"Malformed paleo-event in AI response: {item!r}") from e
        return events

    def _handle_fossil_image(self, req: FossilImageRequest) -> str:
        contents = [
            types.Part.from_bytes(data=req.image, mime_type=req.mime_type),
            FOSSIL_IMAGE_PROMPT,
        ]
        return self._generate(contents, types.GenerateContentConfig(), "image analysis")


__all__ = [
    "DEFAULT_MODEL",
    "AnalysisRequest",
    "SummaryRequest",
    "HeaderMappingRequest",
    "AgeModelRequest",
    "PaleoEventsRequest",
    "FossilImageRequest",
    "AiService",
    "format_section_context",
    "wants_search",
    "summary_prompt",
    "header_mapping_prompt",
    "header_mapping_schema",
    "pick_event_proxy",
    "parse_json_text",
]
