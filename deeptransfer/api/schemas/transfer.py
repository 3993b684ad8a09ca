from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    entity_set: str = Field(..., alias="entitySet", min_length=1)
    selected_keys: List[Union[int, str]] = Field(default_factory=list, alias="selectedKeys")
    format: str = "json"
    locale: Optional[str] = None


class ImportResponse(BaseModel):
    entity_set: str
    imported: int


class EntityListResponse(BaseModel):
    entities: List[str]


class ColumnsResponse(BaseModel):
    entity_set: str
    columns: List[str]


class PlanResponse(BaseModel):
    entity: str
    max_depth: int
    depth: int
    root: Dict[str, Any]
    warnings: List[str] = Field(default_factory=list)
    columns: Optional[List[Any]] = None
