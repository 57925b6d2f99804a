"""Pydantic schemas for FaceCheck API responses.

Every field is optional: ``None`` means the server left it out.
"""
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from facecheck.exceptions import TransportError


class APIModel(BaseModel):
    """Base for response models; unknown keys are kept."""
    model_config = ConfigDict(extra="allow")


class InputImage(APIModel):
    """Single uploaded picture."""
    id_pic: str | None = None
    url_source: str | None = None


class MatchItem(APIModel):
    """Single match in a finished search."""
    score: int | float = 0
    url: str | None = None
    group: int | str | None = None
    seen: int | str | None = None
    base64: str | None = None

    @field_validator("score", mode="before")
    @classmethod
    def _null_score(cls, value):
        return 0 if value is None else value


class SearchOutput(APIModel):
    """Result block of a finished search."""
    items: list[MatchItem] = []
    tookSeconds: float | None = None
    searchedFaces: int | None = None
    max_score: int | float | None = None
    demo: bool | None = None
    face_per_sec: int | float | None = None

    @field_validator("items", mode="before")
    @classmethod
    def _null_items(cls, value):
        return [] if value is None else value


class UploadResponse(APIModel):
    """Response for upload_pic endpoint."""
    id_search: str | None = None
    message: str | None = None
    progress: int | float | None = None
    was_updated: bool | None = None
    input: list[InputImage] = []

    @field_validator("input", mode="before")
    @classmethod
    def _null_input(cls, value):
        return [] if value is None else value


class SearchResponse(APIModel):
    """Response for search endpoint."""
    id_search: str | None = None
    message: str | None = None
    progress: int | float | None = None
    was_updated: bool | None = None
    new_seen_count: int | None = None
    output: SearchOutput | None = None


class InfoResponse(APIModel):
    """Response for info endpoint."""
    faces: int | None = None
    is_online: bool | None = None
    remaining_credits: int | None = None
    has_credits_to_search: bool | None = None


class DeleteResponse(APIModel):
    """Response for delete_pic endpoint."""
    id_search: str | None = None
    message: str | None = None


def parse_response(model: type[APIModel], data: dict) -> APIModel:
    """Validate decoded JSON against ``model``."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise TransportError(f"Unexpected {model.__name__} payload: {e}") from e
