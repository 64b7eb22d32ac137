from inventory.pagination import page_offset, page_range, pagination_meta


def test_pagination_meta_middle_page():
    assert pagination_meta(total=45, page=2, page_size=20) == {
        "page": 2,
        "page_size": 20,
        "total": 45,
        "total_pages": 3,
        "has_next": True,
        "has_previous": True,
    }


def test_pagination_meta_empty():
    meta = pagination_meta(total=0)
    assert meta["total_pages"] == 0
    assert not meta["has_next"]
    assert not meta["has_previous"]


def test_page_offset():
    assert page_offset(1, 20) == 0
    assert page_offset(3, 20) == 40
    assert page_offset(0, 20) == 0


def test_page_range_short():
    assert page_range(1, 3) == [1, 2, 3]


def test_page_range_with_ellipses():
    assert page_range(10, 20) == [1, "...", 8, 9, 10, 11, 12, "...", 20]
    assert page_range(1, 20) == [1, 2, 3, 4, 5, "...", 20]
    assert page_range(20, 20) == [1, "...", 16, 17, 18, 19, 20]
