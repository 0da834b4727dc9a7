"""
Pagination for Function-Based Views

Two entry points:
- auto_paginate: decorator for views returning a plain list
- paginated_response: paginate a queryset at the database level

Both produce the standardized response format:
{
    "status": "success",
    "message": "",
    "data": {"count": ..., "next": ..., "previous": ..., "results": [...]}
}
"""
from functools import wraps

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class StandardResultsSetPagination(PageNumberPagination):
    """
    Standard pagination class for the project.

    Query Parameters:
    - page: Page number (default: 1)
    - page_size: Items per page (default: 25, max: 200)
    """
    page_size = 25
    page_size_query_param = 'page_size'
    max_page_size = 200

    def get_paginated_response(self, data):
        return Response({
            'status': 'success',
            'message': '',
            'data': {
                'count': self.page.paginator.count,
                'page': self.page.number,
                'page_size': self.get_page_size(self.request),
                'next': self.get_next_link(),
                'previous': self.get_previous_link(),
                'results': data
            }
        })


def auto_paginate(view_func):
    """
    Decorator that paginates list responses from function-based views.

    Usage:
        @api_view(['GET', 'POST'])
        @require_capability(*USER_ADMIN)
        @auto_paginate
        def admin_user_list(request):
            ...
            return Response(serializer.data)

    Only GET responses whose data is a list are paginated; everything else
    is returned untouched.
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        response = view_func(request, *args, **kwargs)

        if (
            request.method == 'GET' and
            isinstance(response, Response) and
            isinstance(response.data, list)
        ):
            paginator = StandardResultsSetPagination()
            page = paginator.paginate_queryset(response.data, request)
            if page is not None:
                return paginator.get_paginated_response(page)

        return response

    return wrapper


def paginated_response(request, queryset, serializer_class):
    """Slice the queryset in the database and serialize only the current page."""
    paginator = StandardResultsSetPagination()
    page = paginator.paginate_queryset(queryset, request)
    serializer = serializer_class(page, many=True)
    return paginator.get_paginated_response(serializer.data)
