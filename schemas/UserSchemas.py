import enum

from pydantic import BaseModel


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    TEKNISI = "teknisi"
    SALES = "sales"


class Actor(BaseModel):
    """Authenticated caller as supplied by the identity service."""
    id: int
    username: str
    role: UserRole


class UserSummary(BaseModel):
    id: int
    username: str
    full_name: str
    role: UserRole

    class Config:
        from_attributes = True
