"""
=============================================================================
UPDATE RESPONSE DOCUMENT
=============================================================================

The answer to an update check is a fixed gupdate document with exactly
three substitution points:

    <?xml version='1.0' encoding='UTF-8'?>
    <gupdate xmlns='http://www.google.com/update2/response' protocol='2.0'>
      <app appid='{appid}'>                         ◄── extension id
        <updatecheck codebase='{codebase}'          ◄── download URL
                     version='{version}' />         ◄── manifest version
      </app>
    </gupdate>

Element names, attribute names and nesting are what update clients parse,
so the template must not change shape.

Values are escaped for a single-quoted XML attribute. For the usual
alphanumeric ids and dotted versions this is a no-op.
=============================================================================
"""

from xml.sax.saxutils import escape


UPDATE_XML_TEMPLATE = (
    "<?xml version='1.0' encoding='UTF-8'?>\n"
    "<gupdate xmlns='http://www.google.com/update2/response' protocol='2.0'>\n"
    "  <app appid='{appid}'>\n"
    "    <updatecheck codebase='{codebase}' version='{version}' />\n"
    "  </app>\n"
    "</gupdate>\n"
)

UPDATE_XML_CONTENT_TYPE = "text/xml; charset=utf-8"

_ATTRIBUTE_ENTITIES = {"'": "&apos;", '"': "&quot;"}


def _attr(value: str) -> str:
    return escape(value, _ATTRIBUTE_ENTITIES)


class UpdateResponseBuilder:
    """
    Renders the update-protocol document.

    Usage:
        builder = UpdateResponseBuilder()
        url = builder.package_url("http://host:80", "abc")   # http://host:80/abc.crx
        xml = builder.build("abc", url, "1.0")
    """

    def __init__(self, template: str = UPDATE_XML_TEMPLATE):
        self.template = template

    def build(self, extension_id: str, download_url: str, version: str) -> str:
        """Substitute the three values into the template. Never fails."""
        return self.template.format(
            appid=_attr(extension_id),
            codebase=_attr(download_url),
            version=_attr(version),
        )

    @staticmethod
    def package_url(base_url: str, extension_id: str) -> str:
        """Download URL for a package: "<base_url>/<id>.crx"."""
        return f"{base_url.rstrip('/')}/{extension_id}.crx"
