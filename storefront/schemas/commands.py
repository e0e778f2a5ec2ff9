"""
Storefront — Command schemas

Every mutation the dashboard and profile screens perform is posted to
/commands as one of these shapes, selected by "action".
"""
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, RootModel


class AddMenuItem(BaseModel):
    action: Literal["add_menu_item"]
    name: str = Field(..., max_length=255)
    price: int
    image: str = Field(..., max_length=1024)
    description: str = ""
    category: str = Field("", max_length=100)
    is_active: bool = True


class EditMenuItem(BaseModel):
    action: Literal["edit_menu_item"]
    id: str
    name: str = Field(..., max_length=255)
    price: int
    image: str = Field("", max_length=1024)
    description: str = ""
    category: str = Field("", max_length=100)
    is_active: bool = True


class DeleteMenuItem(BaseModel):
    action: Literal["delete_menu_item"]
    id: str


class ReorderMenu(BaseModel):
    action: Literal["reorder_menu"]
    positions: dict[str, int] = Field(..., min_length=1)  # item id → display_order


class UpdateProfile(BaseModel):
    action: Literal["update_profile"]
    name: str = Field(..., max_length=100)
    storename: str = Field(..., max_length=255)
    storenumber: str | None = Field(None, max_length=32)
    store_image: str | None = Field(None, max_length=1024)


class AcceptOrder(BaseModel):
    action: Literal["accept_order"]
    order_id: str


class Logout(BaseModel):
    action: Literal["logout"]


class UpdatePhone(BaseModel):
    action: Literal["update_phone"]
    phone_number: str = Field(..., max_length=32)


Command = Annotated[
    Union[
        AddMenuItem,
        EditMenuItem,
        DeleteMenuItem,
        ReorderMenu,
        UpdateProfile,
        AcceptOrder,
        Logout,
        UpdatePhone,
    ],
    Field(discriminator="action"),
]


class CommandRequest(RootModel[Command]):
    pass


class CommandResult(BaseModel):
    success: bool = True
    action: str
    message: str = ""
    data: dict = Field(default_factory=dict)
