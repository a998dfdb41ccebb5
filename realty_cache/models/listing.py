from pydantic import BaseModel, ConfigDict


class OfferingType(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str


class PropertyType(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str


class Community(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    city: str = "Dubai"
    is_luxe: bool = False


class PageMeta(BaseModel):
    """SEO metadata attached to a site path."""

    model_config = ConfigDict(from_attributes=True)

    path: str
    title: str
    meta_title: str | None = None
    meta_description: str | None = None
    keywords: list[str] = []
