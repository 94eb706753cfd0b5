"""Login accounts."""

from uuid import UUID

from sqlmodel import Session

from skill_matrix.core.observability import get_logger
from skill_matrix.core.security import get_password_hash, verify_password
from skill_matrix.domain.shared.exceptions import DuplicateNameError
from skill_matrix.infrastructure.database.repositories.access import UserRepository
from skill_matrix.models import User, UserCreate, UserUpdate

logger = get_logger(__name__)


class UserService:
    def __init__(self, session: Session) -> None:
        self.users = UserRepository(session)

    def create_user(self, user_create: UserCreate) -> User:
        if self.users.get_by_email(user_create.email) is not None:
            raise DuplicateNameError(
                "A user with this email already exists.", user_create.email
            )
        user = User.model_validate(
            user_create,
            update={"hashed_password": get_password_hash(user_create.password)},
        )
        user = self.users.create(user)
        logger.info("User created", new_user_id=str(user.id), role=user.role.value)
        return user

    def update_user(self, user_id: UUID, user_update: UserUpdate) -> User:
        return self.users.update(user_id, user_update)

    def authenticate(self, email: str, password: str) -> User | None:
        user = self.users.get_by_email(email)
        if user is None or not user.hashed_password:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user
