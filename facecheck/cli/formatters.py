"""Render FaceCheck API responses as text lines."""
import json

from facecheck.api.schemas import (
    DeleteResponse, InfoResponse, MatchItem, SearchResponse, UploadResponse,
    parse_response,
)

NA = "N/A"
MAX_MATCHES = 20
PREVIEW_CHARS = 50
DEFAULT_GROUP = "0"


def _value(value, default=NA) -> str:
    return default if value is None else str(value)


def _yes_no(value) -> str:
    return "Yes" if value else "No"


def _progress(value) -> str:
    return NA if value is None else f"{value}%"


def format_raw(data: dict) -> str:
    """Raw mode: decoded response as indented JSON."""
    return json.dumps(data, indent=2, ensure_ascii=False)


def rank_matches(items: list[MatchItem], limit: int = MAX_MATCHES) -> list[MatchItem]:
    """Highest score first; equal scores keep server order."""
    return sorted(items, key=lambda m: m.score, reverse=True)[:limit]


def format_upload(data: dict) -> list[str]:
    resp = parse_response(UploadResponse, data)
    lines = [
        f"Search ID: {_value(resp.id_search)}",
        f"Message: {_value(resp.message)}",
        f"Progress: {_progress(resp.progress)}",
        f"Was Updated: {_yes_no(resp.was_updated)}",
        f"Images Count: {len(resp.input)}",
    ]
    if resp.input:
        lines.append("Images:")
        for img in resp.input:
            lines.append(f"  - {_value(img.id_pic)}: {_value(img.url_source)}")
    return lines


def format_match(ordinal: int, item: MatchItem) -> list[str]:
    lines = [f"{ordinal}. Score: {item.score}"]
    if item.group is not None and str(item.group) not in ("", DEFAULT_GROUP):
        lines.append(f"   Group: {item.group}")
    lines.append(f"   URL: {_value(item.url)}")
    lines.append(f"   Seen: {_value(item.seen)}")
    if item.base64:
        preview = item.base64[:PREVIEW_CHARS]
        if len(item.base64) > PREVIEW_CHARS:
            preview += "..."
        lines.append(f"   Thumbnail: {preview}")
    return lines


def format_search(data: dict) -> list[str]:
    resp = parse_response(SearchResponse, data)
    lines = [
        f"Search ID: {_value(resp.id_search)}",
        f"Message: {_value(resp.message)}",
        f"Progress: {_progress(resp.progress)}",
        f"Was Updated: {_yes_no(resp.was_updated)}",
        f"New Seen Count: {_value(resp.new_seen_count, '0')}",
    ]

    output = resp.output
    if output is None:
        return lines

    lines += [
        f"Results Count: {len(output.items)}",
        f"Took Seconds: {_value(output.tookSeconds)}",
        f"Searched Faces: {_value(output.searchedFaces)}",
        f"Max Score: {_value(output.max_score)}",
        f"Demo: {_yes_no(output.demo)}",
        f"Faces/sec: {_value(output.face_per_sec)}",
    ]

    ranked = rank_matches(output.items)
    if not ranked:
        lines.append("No matches found.")
        return lines

    lines.append("")
    lines.append(f"Top {len(ranked)} matches:")
    for i, item in enumerate(ranked, 1):
        lines += format_match(i, item)
    return lines


def format_info(data: dict) -> list[str]:
    resp = parse_response(InfoResponse, data)
    faces = NA if resp.faces is None else f"{resp.faces:,}"
    return [
        f"Online: {_yes_no(resp.is_online)}",
        f"Indexed Faces: {faces}",
        f"Remaining Credits: {_value(resp.remaining_credits, '0')}",
        f"Can Search: {_yes_no(resp.has_credits_to_search)}",
    ]


def format_delete(data: dict) -> list[str]:
    resp = parse_response(DeleteResponse, data)
    return [
        f"Search ID: {_value(resp.id_search)}",
        f"Message: {_value(resp.message)}",
    ]
