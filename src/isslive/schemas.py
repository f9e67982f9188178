"""Pydantic response models for the query API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SampleValueOut(BaseModel):
    value: str | None
    timestamp: int
    id: int


class KeyOut(BaseModel):
    key: str
    description: str = ""
    ops_nom: str = ""
    eng_nom: str = ""
    units: str = ""
    min_value: str = ""
    max_value: str = ""
    enum_values: str = ""
    format_spec: str = ""


class KeySeriesOut(KeyOut):
    values: list[SampleValueOut] = Field(default_factory=list)


class LatestOut(BaseModel):
    value: str | None
    timestamp: int
    description: str = ""
    ops_nom: str = ""
    eng_nom: str = ""
    units: str = ""
    min_value: str = ""
    max_value: str = ""
    enum_values: str = ""
    format_spec: str = ""


class ErrorOut(BaseModel):
    error: str
