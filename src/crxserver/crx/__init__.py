"""
=============================================================================
CRX PACKAGE FORMAT
=============================================================================

    container.py    Cr24 envelope → public key, signature, zip payload
    manifest.py     zip payload → manifest.json → version string

Usage:
    from crxserver.crx import PackageParser, ManifestExtractor

    package = PackageParser().parse_file("files/abcdef.crx")
    version = ManifestExtractor().extract_version(package.archive)
=============================================================================
"""

from .container import (
    CRX_MAGIC,
    CRX_VERSION,
    ZIP_LOCAL_HEADER_MAGIC,
    CrxPackage,
    PackageParser,
    pack_crx,
    parse_crx,
)
from .manifest import ExtensionManifest, ManifestExtractor, extract_version

__all__ = [
    "CRX_MAGIC",
    "CRX_VERSION",
    "ZIP_LOCAL_HEADER_MAGIC",
    "CrxPackage",
    "PackageParser",
    "pack_crx",
    "parse_crx",
    "ExtensionManifest",
    "ManifestExtractor",
    "extract_version",
]
