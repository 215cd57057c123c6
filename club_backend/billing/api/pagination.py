# billing/api/pagination.py

from rest_framework.pagination import PageNumberPagination


class BillingPagination(PageNumberPagination):
    """?page=2&page_size=50"""

    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 100
