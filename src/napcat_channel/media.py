"""
Media type resolution for outbound media references.
"""

import logging
import re
from typing import Optional

from napcat_channel.host import MediaDetector

logger = logging.getLogger(__name__)

_BASE64_RE = re.compile(r"^base64://", re.IGNORECASE)

# media kind -> OneBot segment type
SEGMENT_TYPE_BY_KIND = {"image": "image", "audio": "record", "video": "video"}


async def resolve_media_segment_type(media_url: str, detector: MediaDetector) -> Optional[str]:
    """Return "image", "record" or "video", or None when the kind cannot be determined."""
    if _BASE64_RE.match(media_url):
        return "image"
    mime = await detector.detect_mime(media_url)
    kind = detector.kind_from_mime(mime)
    segment_type = SEGMENT_TYPE_BY_KIND.get(kind)
    if segment_type is None:
        logger.debug("napcat: no media kind for %s (mime=%s)", media_url[:120], mime)
    return segment_type


def degrade_to_text(caption: str, media_url: str) -> str:
    return f"{caption}\n{media_url}" if caption else media_url
