"""
Database Schemas for the Potions API

MongoDB collections are defined below using Pydantic models. Each class name is
converted to lowercase for the collection name (Potion -> "potion").

We will use these collections:
- potion: the catalogue every report runs against
- user: accounts allowed to modify the catalogue
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class Ratings(BaseModel):
    strength: Optional[float] = None
    flavor: Optional[float] = None


class Potion(BaseModel):
    name: Optional[str] = None
    price: Optional[float] = None
    score: Optional[float] = None
    ingredients: Optional[List[Any]] = None
    ratings: Optional[Ratings] = None
    tryDate: Optional[datetime] = None
    categories: Optional[List[str]] = None
    vendor_id: Optional[str] = None


class User(BaseModel):
    name: str = Field(..., min_length=3, max_length=30)
    password_hash: str = Field(..., description="BCrypt hash of password")
