"""
HTTP layer for the credence engine.

Routers are mounted under /api by main.py.
"""
from . import admin, contents, invest, users
from .errors import install_error_handlers

routers = [
    (invest.router, ["Investments"]),
    (users.router, ["Users"]),
    (contents.router, ["Contents"]),
    (admin.router, ["Admin"]),
]

__all__ = ['routers', 'install_error_handlers']
