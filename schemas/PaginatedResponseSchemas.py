from pydantic import BaseModel
from typing import List, Optional, Generic, TypeVar

# A generic type variable to make the response wrappers reusable for different data types
T = TypeVar('T')


class ApiResponse(BaseModel, Generic[T]):
    """
    Envelope returned by every endpoint: ``success``, a human-readable
    ``message`` and the optional ``data`` payload.
    """
    success: bool = True
    message: str = ""
    data: Optional[T] = None


class PaginatedResponse(BaseModel, Generic[T]):
    """
    A generic Pydantic model for paginated responses.
    `data` will be a list of items of type T.
    `total` will be the total count of items.
    """
    success: bool = True
    message: str = ""
    data: List[T]
    total: int
    page: int = 1
    limit: int = 10
    total_pages: int = 0
