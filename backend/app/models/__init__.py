# Import models here so Alembic can discover metadata.
from app.models.user import User  # noqa: F401
from app.models.client import Client  # noqa: F401
from app.models.profile import Profile  # noqa: F401
from app.models.user_client import UserClient  # noqa: F401

# Client-scoped resources
from app.models.report import Report  # noqa: F401
from app.models.task import Task, TaskActivity, TaskComment  # noqa: F401
from app.models.setting import Setting  # noqa: F401
from app.models.service import Service, ServiceCategory  # noqa: F401
