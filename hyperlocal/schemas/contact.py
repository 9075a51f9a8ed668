# hyperlocal/schemas/contact.py
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class ContactMessage(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    subject: Optional[str] = None
    message: str = Field(min_length=1)
