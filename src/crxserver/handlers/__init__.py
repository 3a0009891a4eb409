"""
Request handlers.

    UpdateHandler        GET /?x=...    gupdate XML or empty 200
    PackageFileHandler   GET /<file>    package download
"""

from .files import FileChunks, PackageFileHandler
from .update import UpdateHandler

__all__ = [
    "UpdateHandler",
    "PackageFileHandler",
    "FileChunks",
]
