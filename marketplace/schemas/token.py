from pydantic import BaseModel
from marketplace.core.constants import RoleEnum

class TokenPayload(BaseModel):
    sub: int
    role: RoleEnum
