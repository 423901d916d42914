"""API Routers package."""
from . import auth, records

__all__ = ['auth', 'records']
