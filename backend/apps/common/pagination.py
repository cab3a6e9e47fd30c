"""
分页器：响应结构见 common.response.page_success
"""

from __future__ import annotations

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from apps.common.response import page_success


class StandardPagination(PageNumberPagination):
    """
    ?page=&page_size=，默认 20 条，上限 100；page_size 非法时回落到默认值
    """

    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 100

    def get_paginated_response(self, data) -> Response:
        paginator = self.page.paginator
        return page_success(
            list(data),
            page=self.page.number,
            page_size=paginator.per_page,
            total=paginator.count,
            total_pages=paginator.num_pages,
            has_next=self.page.has_next(),
            has_previous=self.page.has_previous(),
        )

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "properties": {
                "code": {"type": "integer", "example": 0},
                "message": {"type": "string", "example": "OK"},
                "data": schema,
                "extra": {
                    "type": "object",
                    "properties": {
                        "page": {"type": "integer"},
                        "page_size": {"type": "integer"},
                        "total": {"type": "integer"},
                        "total_pages": {"type": "integer"},
                        "has_next": {"type": "boolean"},
                        "has_previous": {"type": "boolean"},
                    },
                },
            },
        }
