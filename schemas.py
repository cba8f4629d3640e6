"""
Database Schemas

Each Pydantic model represents a collection in MongoDB.
Model name lowercased is the collection name.
"""

from typing import Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address, unique per user")
    password_hash: str = Field(..., description="BCrypt hashed password")
    address: Optional[str] = None


class Product(BaseModel):
    product_name: str
    product_price: float = Field(..., ge=0)
    product_image: str = Field(..., description="Public URL returned by the image uploader")


class CartItem(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    user_id: ObjectId
    product_id: ObjectId
    quantity: int = Field(1, ge=1)
