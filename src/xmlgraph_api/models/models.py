#!/usr/bin/env python3

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Pydantic Models


class SourceOptions(BaseModel):
    """Options shared by record loading and graph import.

    Field names follow Python conventions; the camelCase aliases are the names
    used in request bodies and configuration files.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    fail_on_error: bool = Field(True, alias="failOnError")
    allow_dtd: bool = Field(False, alias="allowDtd")  # trusted input: resolve external DTDs/entities
    forbid_dtd: bool = Field(False, alias="forbidDtd")  # strict: reject any DOCTYPE
    headers: dict[str, str] = {}  # extra HTTP headers for URL locators


class LoadOptions(SourceOptions):
    # true: children keys named after the owning element; "child": children grouped by their own tag
    simple_mode: bool | Literal["child"] = Field(False, alias="simpleMode")


class ImportOptions(SourceOptions):
    create_next_word_relationships: bool = Field(False, alias="createNextWordRelationships")
    connect_characters: bool = Field(False, alias="connectCharacters")
    filter_leading_whitespace: bool = Field(False, alias="filterLeadingWhitespace")
    characters_rel_type: str = Field("NE", alias="charactersRelType", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    delimiter: str | None = None  # regex splitting text into words; whitespace when unset

    @field_validator("delimiter")
    @classmethod
    def check_delimiter(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid delimiter pattern: {e}") from e
        return value

    @model_validator(mode="after")
    def check_tokenization_mode(self):
        if self.connect_characters and self.create_next_word_relationships:
            raise ValueError(
                "connectCharacters and createNextWordRelationships select different tokenization modes; set only one"
            )
        return self


class XmlLoadRequest(BaseModel):
    locator: str
    path: str | None = None
    options: LoadOptions = LoadOptions()


class XmlParseRequest(BaseModel):
    xml: str
    path: str | None = None
    options: LoadOptions = LoadOptions()


class XmlLoadResponse(BaseModel):
    results: list[dict[str, Any]] = []
    count: int = 0


class XmlImportRequest(BaseModel):
    locator: str
    options: ImportOptions = ImportOptions()


class XmlImportResponse(BaseModel):
    status: str  # 'success' or 'skipped'
    locator: str
    document: str | int | None = None  # storage identity of the XmlDocument node
    nodes: dict[str, int] = {}
    relationships: dict[str, int] = {}
    node_count: int = 0
    relationship_count: int = 0
