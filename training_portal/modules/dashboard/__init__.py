"""
Dashboard module package exports.
"""

from .controller import DashboardController
from .model import VIEW_ADMIN, VIEW_LOADING, VIEW_LOGIN, VIEW_TRAINEE, UserSummary

__all__ = [
    "DashboardController",
    "UserSummary",
    "VIEW_ADMIN",
    "VIEW_LOADING",
    "VIEW_LOGIN",
    "VIEW_TRAINEE",
]
