"""Request schemas for the catalog services."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CatalogPayload(BaseModel):
    """Shared behaviour of catalog request payloads."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    @field_validator("slug", mode="before", check_fields=False)
    @classmethod
    def blank_slug_is_none(cls, v: Any) -> Any:
        """Treat an empty slug as "derive it from the name"."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def changes(self) -> Dict[str, Any]:
        """Fields the caller actually set."""
        return self.model_dump(exclude_unset=True)


class CategoryCreate(CatalogPayload):
    name: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=100)
    image: Optional[str] = Field(None, max_length=500)
    parent_id: Optional[int] = None
    is_active: bool = True
    sort_order: int = 0
    meta_title: Optional[str] = Field(None, max_length=200)
    meta_description: Optional[str] = Field(None, max_length=500)


class CategoryUpdate(CatalogPayload):
    """Partial category update; unset fields are left alone."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=100)
    image: Optional[str] = Field(None, max_length=500)
    parent_id: Optional[int] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None
    meta_title: Optional[str] = Field(None, max_length=200)
    meta_description: Optional[str] = Field(None, max_length=500)


class ProductCreate(CatalogPayload):
    name: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    stock: int = Field(0, ge=0)
    status: str = "draft"
    sku: Optional[str] = Field(None, max_length=100)
    brand: Optional[str] = Field(None, max_length=100)
    featured: bool = False
    is_active: bool = True
    category_id: Optional[int] = None


class ProductUpdate(CatalogPayload):
    """Partial product update; unset fields are left alone."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    status: Optional[str] = None
    sku: Optional[str] = Field(None, max_length=100)
    brand: Optional[str] = Field(None, max_length=100)
    featured: Optional[bool] = None
    is_active: Optional[bool] = None
    category_id: Optional[int] = None
