"""
Update protocol: parse the client's nested query, render the gupdate XML.
"""

from .query import UpdateQuery, parse_update_query, is_safe_extension_id
from .response import (
    UPDATE_XML_CONTENT_TYPE,
    UPDATE_XML_TEMPLATE,
    UpdateResponseBuilder,
)

__all__ = [
    "UpdateQuery",
    "parse_update_query",
    "is_safe_extension_id",
    "UpdateResponseBuilder",
    "UPDATE_XML_TEMPLATE",
    "UPDATE_XML_CONTENT_TYPE",
]
