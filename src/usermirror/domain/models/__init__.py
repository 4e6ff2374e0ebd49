from .query import UserQuery, normalize_term
from .user import Address, Company, Geo, UserRecord

__all__ = ["Address", "Company", "Geo", "UserQuery", "UserRecord", "normalize_term"]
