"""用户 CRUD：订阅随用户一并加载，这里只需按主键读取。"""

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.user import User


class CRUDUser(CRUDBase[User]):
    pass


user_crud = CRUDUser(User)
