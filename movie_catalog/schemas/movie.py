"""Pydantic schemas for movie requests and responses.

Request bodies are parsed strictly: unknown fields are rejected and JSON types
must match exactly (``"2010"`` is not a year). Business rules (year range,
genre count, ...) are not expressed here; they are checked by the movie
service so every failing field is reported at once.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class MovieCreateRequest(BaseModel):
    """Payload for creating a movie. Missing fields fail validation later."""

    model_config = ConfigDict(extra="forbid", strict=True)

    title: str | None = Field(default=None, description="Movie title (max 500 bytes).")
    year: int | None = Field(default=None, description="Release year (2000 to current year).")
    runtime: int | None = Field(default=None, description="Runtime in minutes.")
    genres: list[str] | None = Field(default=None, description="1 to 5 distinct genres.")


class MovieUpdateRequest(BaseModel):
    """Partial update payload.

    A field left out of the JSON body keeps its stored value; a field that is
    present overwrites it, even with an empty or zero value. Presence is read
    from ``model_fields_set``, not from the value.
    """

    model_config = ConfigDict(extra="forbid", strict=True)

    title: str | None = None
    year: int | None = None
    runtime: int | None = None
    genres: list[str] | None = None

    def supplied_fields(self) -> dict[str, object]:
        return {name: getattr(self, name) for name in self.model_fields_set}


class MovieOut(BaseModel):
    id: int
    title: str
    year: int
    runtime: int
    genres: list[str]
    version: int


class MovieEnvelope(BaseModel):
    movie: MovieOut


class MetadataOut(BaseModel):
    """Pagination metadata; all zero when nothing matched."""

    current_page: int = Field(0, ge=0)
    page_size: int = Field(0, ge=0)
    last_page: int = Field(0, ge=0)
    total_records: int = Field(0, ge=0, description="Matches across all pages.")


class MovieListEnvelope(BaseModel):
    movies: list[MovieOut]
    metadata: MetadataOut


class MessageResponse(BaseModel):
    message: str


class SystemInfo(BaseModel):
    environment: str
    version: str


class HealthResponse(BaseModel):
    status: str
    system_info: SystemInfo


class ErrorBody(BaseModel):
    code: str
    message: str
    request_id: str | None = None
    details: dict | None = None


class ErrorResponse(BaseModel):
    error: ErrorBody
