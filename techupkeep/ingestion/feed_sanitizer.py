"""
Repair common malformed-XML patterns in syndication feeds before parsing.

Many blog feeds ship bare ampersands in titles or stray empty close tags
that make strict XML parsers give up on the whole document.
"""

import re

# "&" that does not start one of the five XML entities or a numeric reference
_BARE_AMPERSAND = re.compile(r"&(?!amp;|lt;|gt;|quot;|apos;|#\d+;|#x[0-9a-fA-F]+;)")

# "</>" with optional whitespace inside
_EMPTY_CLOSE_TAG = re.compile(r"<\s*/\s*>")


def sanitize_xml(xml: str) -> str:
    """
    Sanitize raw feed XML.

    Escapes bare ampersands, removes stray empty close tags and trims
    surrounding whitespace. Does not otherwise validate the document.

    Args:
        xml: Raw feed body

    Returns:
        Sanitized feed body
    """
    xml = _BARE_AMPERSAND.sub("&amp;", xml)
    xml = _EMPTY_CLOSE_TAG.sub("", xml)
    return xml.strip()
