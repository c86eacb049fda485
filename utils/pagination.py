from typing import Optional, Generic, TypeVar, List
from pydantic import BaseModel

from constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

T = TypeVar('T')


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of a listing plus the navigation fields the UI needs."""
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


def normalize_page(page: Optional[int] = None, page_size: Optional[int] = None) -> tuple[int, int]:
    """Fill in defaults and clamp page_size to MAX_PAGE_SIZE."""
    page = page if page is not None and page > 0 else DEFAULT_PAGE
    page_size = page_size if page_size is not None and page_size > 0 else DEFAULT_PAGE_SIZE
    return page, min(page_size, MAX_PAGE_SIZE)


def get_pagination_params(page: Optional[int] = None, page_size: Optional[int] = None) -> tuple[int, int]:
    """
    Translate a 1-indexed page into MongoDB paging arguments.

    Returns:
        Tuple of (skip, limit)
    """
    page, page_size = normalize_page(page, page_size)
    return (page - 1) * page_size, page_size


async def paginate(
    collection,
    query: dict,
    sort: list,
    page: Optional[int] = None,
    page_size: Optional[int] = None
) -> tuple[list[dict], int]:
    """
    Count the documents matching ``query`` and fetch one sorted page of them.

    Returns:
        (documents on the page, total matching documents)
    """
    skip, limit = get_pagination_params(page, page_size)
    total = await collection.count_documents(query)
    cursor = collection.find(query).sort(sort).skip(skip).limit(limit)
    return await cursor.to_list(length=limit), total


def create_paginated_response(
    items: List[T],
    total: int,
    page: Optional[int] = None,
    page_size: Optional[int] = None
) -> PaginatedResponse[T]:
    page, page_size = normalize_page(page, page_size)
    total_pages = (total + page_size - 1) // page_size if total > 0 else 0

    return PaginatedResponse(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_previous=page > 1
    )
