from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class DashboardFiltersModel(BaseModel):
    selected_products: List[str] = Field(default_factory=list)


class ProductOptionModel(BaseModel):
    id: str
    name: str


class MetaProductsResponse(BaseModel):
    products: List[ProductOptionModel]


class ImportResponse(BaseModel):
    inserted: int
    total: int
    skipped: int
    message: str


class ErrorResponse(BaseModel):
    error: str
    type: str
    offset: Optional[int] = None
    inserted: Optional[int] = None


class SessionResponse(BaseModel):
    authenticated: bool
    email: Optional[str] = None
    user_id: Optional[str] = None
