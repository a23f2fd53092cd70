from marketplace.crud.base import CRUDBase
from marketplace.models.user import User
from marketplace.schemas.user import UserCreate

class CRUDUser(CRUDBase[User, UserCreate, UserCreate]):
    pass

user = CRUDUser(User)
