"""Common type aliases for the Admin Panel API."""
from typing import Any

# A single record as the backend returns it (field_name -> value)
EntityRecord = dict[str, Any]
