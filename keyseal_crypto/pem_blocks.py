"""PEM block scanner.

Splits a buffer of concatenated PEM blocks into ``PemBlock`` objects::

    -----BEGIN <TYPE>-----
    Proc-Type: 4,ENCRYPTED          <- optional RFC 1421 headers
    DEK-Info: AES-256-CBC,...
                                    <- blank line after headers
    <base64 body>
    -----END <TYPE>-----

Text outside blocks is ignored. A block whose body is not valid base64, or
that has no matching END line, is skipped and scanning resumes after its
BEGIN line.
"""
import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

log = logging.getLogger(__name__)

_BEGIN_RE = re.compile(rb"^-----BEGIN (.*?)-----[ \t]*\r?$", re.MULTILINE)
_LINE_LENGTH = 64


@dataclass
class PemBlock:
    type: str
    headers: Dict[str, str] = field(default_factory=dict)
    data: bytes = b""

    @property
    def encrypted(self) -> bool:
        return "ENCRYPTED" in self.headers.get("Proc-Type", "")

    def encode(self) -> bytes:
        """Re-emit the block as PEM text."""
        out = [f"-----BEGIN {self.type}-----\n"]
        if self.headers:
            # Proc-Type has to come first for OpenSSL to recognise the block.
            keys = sorted(k for k in self.headers if k != "Proc-Type")
            if "Proc-Type" in self.headers:
                keys.insert(0, "Proc-Type")
            out.extend(f"{k}: {self.headers[k]}\n" for k in keys)
            out.append("\n")
        body = base64.b64encode(self.data).decode("ascii")
        out.extend(
            body[i:i + _LINE_LENGTH] + "\n" for i in range(0, len(body), _LINE_LENGTH)
        )
        out.append(f"-----END {self.type}-----\n")
        return "".join(out).encode("ascii")


def _split_headers(body: bytes) -> Tuple[Dict[str, str], bytes]:
    headers: Dict[str, str] = {}
    # body starts with the newline that terminates the BEGIN line
    lines = body.split(b"\n")[1:]
    while lines and b":" in lines[0]:
        key, _, value = lines.pop(0).partition(b":")
        headers[key.strip().decode("ascii", "replace")] = value.strip().decode("ascii", "replace")
    return headers, b"".join(b"".join(lines).split())


def decode_pem(data: bytes, start: int = 0) -> Tuple[Optional[PemBlock], int]:
    """Decode the next PEM block at or after ``start``.

    Returns ``(block, offset just past the END line)``, or ``(None, start)``
    when no further block can be decoded.
    """
    pos = start
    while True:
        begin = _BEGIN_RE.search(data, pos)
        if begin is None:
            return None, start
        block_type = begin.group(1)
        end_re = re.compile(
            rb"^-----END " + re.escape(block_type) + rb"-----[ \t]*\r?$", re.MULTILINE
        )
        end = end_re.search(data, begin.end())
        if end is None:
            log.debug("PEM block %r has no END line, skipping", block_type)
            pos = begin.end()
            continue
        headers, payload = _split_headers(data[begin.end():end.start()])
        try:
            decoded = base64.b64decode(payload, validate=True)
        except binascii.Error:
            log.debug("PEM block %r has an invalid base64 body, skipping", block_type)
            pos = begin.end()
            continue
        block = PemBlock(
            type=block_type.decode("ascii", "replace"),
            headers=headers,
            data=decoded,
        )
        return block, end.end()


def decode_pem_blocks(data: bytes) -> List[PemBlock]:
    """Decode every PEM block in ``data``, in order.

    Stops at the first position where no block is found or where a block has
    an empty type.
    """
    blocks: List[PemBlock] = []
    pos = 0
    while True:
        block, pos = decode_pem(data, pos)
        if block is None or not block.type:
            break
        blocks.append(block)
    return blocks
