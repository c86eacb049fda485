from utils.pagination import create_paginated_response, get_pagination_params


def test_defaults_and_clamping():
    assert get_pagination_params() == (0, 20)
    assert get_pagination_params(3, 10) == (20, 10)
    assert get_pagination_params(0, 1000) == (0, 100)


def test_response_navigation():
    page = create_paginated_response(items=[1, 2], total=5, page=2, page_size=2)

    assert page.total_pages == 3
    assert page.has_next is True
    assert page.has_previous is True


def test_empty_listing():
    page = create_paginated_response(items=[], total=0)
    assert page.total_pages == 0
    assert page.has_next is False
    assert page.page == 1
