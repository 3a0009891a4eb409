"""
=============================================================================
CRXSERVER
=============================================================================

An auto-update server for packaged browser extensions.

Clients poll with their extension id; the server opens the matching
package, reads the version from its manifest and answers with a gupdate
XML document pointing at the download URL. The same server streams the
package bytes when the client follows that URL.

    GET /?x=id%3Dabcdef...%26v%3D1.0    →  <gupdate> ... version='1.2' ...
    GET /abcdef....crx                  →  application/octet-stream

Quick start:
    python -m crxserver --package-dir ./files

Or from code:
    from crxserver import ServerConfig, create_app
    create_app(ServerConfig(package_dir="./files")).run()
=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import HTTPServer, create_app

__all__ = ["HTTPServer", "ServerConfig", "create_app", "__version__"]
