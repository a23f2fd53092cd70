from pydantic import BaseModel, EmailStr, ConfigDict
from typing import Optional

from marketplace.core.constants import RoleEnum

class UserBase(BaseModel):
    full_name: Optional[str] = None
    email: EmailStr

class UserCreate(UserBase):
    role: RoleEnum = RoleEnum.STUDENT

class User(UserBase):
    id: int
    role: RoleEnum
    is_active: bool
    model_config = ConfigDict(from_attributes=True)

class UserContext(BaseModel):
    """The authenticated caller and the role their token was issued for."""
    user: User
    role: RoleEnum
    model_config = ConfigDict(from_attributes=True)
