from .base import QueryBuilder, TenantRepository, count_rows, paginate, pagination_meta

__all__ = ["QueryBuilder", "TenantRepository", "count_rows", "paginate", "pagination_meta"]
