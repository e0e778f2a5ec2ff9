"""
Storefront — Menu and store page schemas
"""
from pydantic import BaseModel


class MenuItemResponse(BaseModel):
    id: str
    name: str
    description: str
    price: int
    image: str
    category: str
    is_active: bool
    display_order: int

    model_config = {"from_attributes": True}


class StorePageResponse(BaseModel):
    name: str
    storename: str
    store_image: str | None = None
    menu_items: list[MenuItemResponse]
    categories: list[str]
    user_id: str | None = None
    user_email: str | None = None
    needs_phone_number: bool = False


class UploadResponse(BaseModel):
    bucket: str
    filename: str
    url: str
