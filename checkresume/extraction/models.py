from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, Field, field_validator, model_validator


@dataclass(frozen=True)
class RawDocument:
    content: bytes = field(repr=False)
    mime_type: str
    filename: str
    size: int = -1

    def __post_init__(self) -> None:
        if self.size < 0:
            object.__setattr__(self, "size", len(self.content))


class SectionSpan(BaseModel):
    name: str
    heading: str
    start: int
    end: int
    text: str

    @model_validator(mode="after")
    def _validate_offsets(self) -> "SectionSpan":
        if self.start < 0 or self.end < self.start:
            raise ValueError("section offsets must satisfy 0 <= start <= end")
        return self


class ExtractedText(BaseModel):
    source_type: str
    text: str
    page_count: int
    word_count: int
    char_count: int
    preamble: str = ""
    spans: list[SectionSpan] = Field(default_factory=list)
    sections: dict[str, str] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)

    @field_validator("source_type")
    @classmethod
    def _validate_source_type(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"pdf", "docx", "txt"}:
            raise ValueError("source_type must be one of: pdf, docx, txt")
        return normalized

    @field_validator("spans")
    @classmethod
    def _validate_span_order(cls, value: list[SectionSpan]) -> list[SectionSpan]:
        for previous, current in zip(value, value[1:]):
            if current.start <= previous.start or current.start < previous.end:
                raise ValueError("section spans must be ordered and non-overlapping")
        return value
