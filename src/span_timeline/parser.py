"""Search hit decoders for jaeger and data-prepper span documents."""

from __future__ import annotations

import calendar
import gzip
import json
import math
import re
import sys
import warnings
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import IO, Any


class TraceMode(str, Enum):
    JAEGER = "jaeger"
    DATA_PREPPER = "data_prepper"
    CUSTOM_DATA_PREPPER = "custom_data_prepper"


class RefType(str, Enum):
    CHILD_OF = "CHILD_OF"
    FOLLOWS_FROM = "FOLLOWS_FROM"


@dataclass(frozen=True)
class SpanReference:
    """A jaeger span reference pointing at another span of the trace."""

    ref_type: RefType
    span_id: str


@dataclass
class NormalizedSpan:
    """Mode-independent view of a single span hit."""

    span_id: str
    start_time_in_nanos: int
    duration_in_ms: float
    service_name: str
    operation_name: str
    error: bool = False
    parent_span_id: str = ""
    references: list[SpanReference] = field(default_factory=list)


def nano_to_ms(nanos: float) -> float:
    return nanos / 1_000_000


def micro_to_ms(micros: float) -> float:
    return micros / 1000


_ISO_FRACTION = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(?::\d{2})?)(?:\.(?P<fraction>\d+))?(?P<tz>.*)$"
)


def parse_iso_to_nano(value: Any) -> int:
    """Convert an ISO-8601 timestamp to integer nanoseconds since the epoch.

    Sub-second digits are kept up to nanosecond precision. Naive timestamps
    are read as UTC. Returns 0 for anything that is not a parseable string.
    """
    if not isinstance(value, str) or not value.strip():
        return 0
    match = _ISO_FRACTION.match(value.strip())
    if match is None:
        return 0
    tz = match.group("tz")
    if tz in ("Z", "z"):
        tz = "+00:00"
    try:
        dt = datetime.fromisoformat(match.group("base") + tz)
    except ValueError:
        return 0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    seconds = calendar.timegm(dt.utctimetuple())
    fraction = (match.group("fraction") or "")[:9].ljust(9, "0")
    return seconds * 1_000_000_000 + int(fraction)


def _to_number(value: Any) -> float:
    """Coerce a numeric or numeric-string field, defaulting to 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        try:
            value = float(value) if "." in value or "e" in value.lower() else int(value)
        except ValueError:
            return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return value
    return 0


def _source(hit: Any) -> dict[str, Any]:
    if not isinstance(hit, dict):
        return {}
    source = hit.get("_source")
    return source if isinstance(source, dict) else {}


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class JaegerDecoder:
    """Decode jaeger span documents (microsecond timing, references list)."""

    mode = TraceMode.JAEGER

    def start_time_in_nanos(self, hit: dict[str, Any]) -> int:
        nanos = _to_number(_source(hit).get("startTime")) * 1000
        return int(nanos) if math.isfinite(nanos) else 0

    def decode(self, hit: dict[str, Any]) -> NormalizedSpan:
        source = _source(hit)
        process = source.get("process")
        tag = source.get("tag")
        return NormalizedSpan(
            span_id=_text(source.get("spanID")),
            start_time_in_nanos=self.start_time_in_nanos(hit),
            duration_in_ms=micro_to_ms(_to_number(source.get("duration"))),
            service_name=_text(process.get("serviceName")) if isinstance(process, dict) else "",
            operation_name=_text(source.get("operationName")),
            error=isinstance(tag, dict) and tag.get("error") is True,
            references=self._references(source.get("references")),
        )

    def _references(self, raw_refs: Any) -> list[SpanReference]:
        if not isinstance(raw_refs, list):
            return []
        refs: list[SpanReference] = []
        for ref in raw_refs:
            if not isinstance(ref, dict):
                continue
            try:
                ref_type = RefType(ref.get("refType"))
            except ValueError:
                continue
            refs.append(SpanReference(ref_type=ref_type, span_id=_text(ref.get("spanID"))))
        return refs


class DataPrepperDecoder:
    """Decode data-prepper span documents (ISO start time, nanosecond durations)."""

    mode = TraceMode.DATA_PREPPER

    def start_time_in_nanos(self, hit: dict[str, Any]) -> int:
        return parse_iso_to_nano(_source(hit).get("startTime"))

    def decode(self, hit: dict[str, Any]) -> NormalizedSpan:
        source = _source(hit)
        return NormalizedSpan(
            span_id=_text(source.get("spanId")),
            start_time_in_nanos=self.start_time_in_nanos(hit),
            duration_in_ms=nano_to_ms(_to_number(source.get("durationInNanos"))),
            service_name=_text(source.get("serviceName")),
            operation_name=_text(source.get("name")),
            error=_status_code(source) == 2,
            parent_span_id=_text(source.get("parentSpanId")),
        )


def _status_code(source: dict[str, Any]) -> Any:
    # Indexed documents flatten the status object into a dotted key
    if "status.code" in source:
        return source["status.code"]
    status = source.get("status")
    if isinstance(status, dict):
        return status.get("code")
    return None


def get_decoder(mode: TraceMode | str) -> JaegerDecoder | DataPrepperDecoder:
    """Return the decoder for a dataset mode.

    Raises ValueError for an unknown mode string.
    """
    if TraceMode(mode) is TraceMode.JAEGER:
        return JaegerDecoder()
    return DataPrepperDecoder()


def parse_span_hit(hit: dict[str, Any], mode: TraceMode | str) -> NormalizedSpan:
    """Decode one raw hit. Missing fields decode to empty values."""
    return get_decoder(mode).decode(hit)


def normalize_payload(response: Any) -> list[dict[str, Any]]:
    """Extract ``hits.hits`` from a search response, or an empty list."""
    if not isinstance(response, dict):
        return []
    hits = response.get("hits")
    if isinstance(hits, dict) and isinstance(hits.get("hits"), list):
        return hits["hits"]
    return []


def sort_payload(hits: list[dict[str, Any]], mode: TraceMode | str) -> list[dict[str, Any]]:
    """Order hits by descending sort key.

    Hits without a usable ``sort[0]`` get ``[start_time_in_nanos]`` as their
    sort key. Non-object entries are skipped with a warning. Input hits are
    not modified.
    """
    decoder = get_decoder(mode)
    keyed: list[dict[str, Any]] = []
    for index, hit in enumerate(hits):
        if not isinstance(hit, dict):
            warnings.warn(
                f"Skipping non-object hit at index {index}",
                stacklevel=2,
            )
            continue
        sort = hit.get("sort")
        if not (isinstance(sort, list) and sort and sort[0]):
            sort = [decoder.start_time_in_nanos(hit)]
        keyed.append({**hit, "sort": sort})
    keyed.sort(key=lambda h: _to_number(h["sort"][0]), reverse=True)
    return keyed


def parse_hits(payload: str) -> list[dict[str, Any]]:
    """Parse a serialized payload into a list of hit dicts.

    Accepts either a JSON array of hits or a full search response.
    Raises ValueError if the payload is not valid JSON.
    """
    data = json.loads(payload)
    if isinstance(data, dict):
        data = normalize_payload(data)
    if not isinstance(data, list):
        raise ValueError("Payload is neither a list of hits nor a search response")

    hits: list[dict[str, Any]] = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            warnings.warn(
                f"Skipping non-object hit at index {index}",
                stacklevel=2,
            )
            continue
        hits.append(entry)
    return hits


def parse_stream(stream: IO) -> list[dict[str, Any]]:
    """Parse a payload from an open text or binary stream."""
    content = stream.read()
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    if not content.strip():
        return []
    return parse_hits(content)


def parse_file(path: str) -> list[dict[str, Any]]:
    """Parse a saved payload file.

    Supports:
    - Plain text ``.json`` files
    - Gzip-compressed ``.json.gz`` files
    - ``-`` for stdin
    """
    if path == "-":
        return parse_stream(sys.stdin)

    if path.endswith(".gz"):
        with gzip.open(path, "rt", encoding="utf-8") as f:
            return parse_stream(f)

    with open(path, encoding="utf-8") as f:
        return parse_stream(f)
