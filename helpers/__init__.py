"""
Helpers domain package.

Public API:
- Domain model: HelperProfile
- Recommendation query: helpers.selection.find_matching_helpers
"""
from .models import HelperProfile

__all__ = ["HelperProfile"]
