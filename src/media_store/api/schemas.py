"""Pydantic payloads of the media HTTP API."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from ..domain.models import MediaEntry, SearchResult


class InsertRequest(BaseModel):
    url: str = Field(min_length=1, description="Fetchable location of the source content.")
    wait: bool = Field(
        default=False,
        description="Respond only after promotion finished (201) or conflicted (409).",
    )


class QueryRequest(BaseModel):
    url: str | None = None
    id: str | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "QueryRequest":
        if (self.url is None) == (self.id is None):
            raise ValueError("provide exactly one of 'url' or 'id'")
        return self


class MediaEntryPayload(BaseModel):
    id: str
    type: str
    variants: list[str]
    urls: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_entry(cls, entry: MediaEntry) -> "MediaEntryPayload":
        return cls(**entry.to_dict())


class InsertResponse(BaseModel):
    id: str
    type: str
    variants: list[str]
    status: str


class QueryInfoPayload(BaseModel):
    id: str
    type: str


class SearchHitPayload(BaseModel):
    similarity: float
    entry: MediaEntryPayload


class SearchResultPayload(BaseModel):
    query_info: QueryInfoPayload
    hits: list[SearchHitPayload]

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResultPayload":
        return cls(
            query_info=QueryInfoPayload(id=result.query_info.id, type=result.query_info.type.value),
            hits=[
                SearchHitPayload(similarity=hit.similarity, entry=MediaEntryPayload.from_entry(hit.entry))
                for hit in result.hits
            ],
        )


__all__ = [
    "InsertRequest",
    "InsertResponse",
    "MediaEntryPayload",
    "QueryRequest",
    "SearchResultPayload",
]
