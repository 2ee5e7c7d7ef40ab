"""Shared FastAPI dependencies."""

from fastapi import Query


class PageParams:
    """Page/limit query parameters shared by list endpoints."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
    ) -> None:
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def meta(self, total: int) -> dict[str, int | bool]:
        """Pagination block returned alongside list results."""
        total_pages = (total + self.limit - 1) // self.limit if total else 0
        return {
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "total_pages": total_pages,
            "has_next": self.page < total_pages,
            "has_prev": self.page > 1,
        }
