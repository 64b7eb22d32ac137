import math

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def pagination_meta(total: int, page: int = DEFAULT_PAGE, page_size: int = DEFAULT_PAGE_SIZE) -> dict:
    total_pages = math.ceil(total / page_size) if total > 0 else 0
    return {
        "page": page,
        "page_size": page_size,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1,
    }


def page_offset(page: int, page_size: int) -> int:
    return (max(page, 1) - 1) * page_size


def page_range(current: int, total_pages: int, max_visible: int = 5) -> list:
    """Page numbers to show, with "..." where pages are skipped."""
    if total_pages <= max_visible:
        return list(range(1, total_pages + 1))

    half = max_visible // 2
    start = max(1, current - half)
    end = min(total_pages, start + max_visible - 1)
    if end - start + 1 < max_visible:
        start = max(1, end - max_visible + 1)

    pages: list = []
    if start > 1:
        pages.append(1)
        if start > 2:
            pages.append("...")
    pages.extend(range(start, end + 1))
    if end < total_pages:
        if end < total_pages - 1:
            pages.append("...")
        pages.append(total_pages)
    return pages
