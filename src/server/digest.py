"""Checksum-tool style digest lines for rendered output."""

import hashlib
import posixpath


def md5_line(content: bytes, path: str) -> str:
    """Format `content`'s MD5 the way md5sum prints it: ``<hex>  <basename>\\n``."""
    return f"{hashlib.md5(content).hexdigest()}  {posixpath.basename(path)}\n"
