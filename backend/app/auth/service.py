from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import create_access_token, create_refresh_token
from app.users.models import User
from app.users.schemas import UserCreate
from app.users.service import create_user, get_user_by_email

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


async def register_user(db: AsyncSession, data: UserCreate) -> User:
    return await create_user(
        db,
        email=data.email,
        password_hash=hash_password(data.password),
        role=data.role,
        name=data.name,
    )


async def authenticate_user(db: AsyncSession, email: str, password: str) -> tuple[User, str, str] | None:
    user = await get_user_by_email(db, email)
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        return None

    access_token = create_access_token(str(user.id))
    refresh_token = create_refresh_token(str(user.id))
    return user, access_token, refresh_token
