# wsdl_soap/mime.py
import mimetypes
import uuid
from email import errors, policy
from email.parser import BytesParser
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .config import AttachmentInput
from .exceptions import DecodeError

ROOT_CONTENT_ID = "<soap-request-body@soap>"

BOUNDARY_DEFECTS = (
    errors.NoBoundaryInMultipartDefect,
    errors.StartBoundaryNotFoundDefect,
    errors.CloseBoundaryNotFoundDefect,
    errors.MultipartInvariantViolationDefect,
)


class MimePart(BaseModel):
    model_config = ConfigDict(frozen=True)

    headers: Dict[str, str] = {}
    content: bytes = b""
    content_type: str = "application/octet-stream"
    content_id: Optional[str] = None


def is_multipart(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.strip().lower().startswith("multipart/")


def strip_content_id(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip().strip("<>").strip() or None


def encode_related(root: bytes, root_content_type: str,
                   attachments: List[AttachmentInput]) -> Tuple[str, bytes]:
    """Wraps a SOAP envelope as the root part of a multipart/related body.

    Returns the Content-Type header value and the body.
    """
    boundary = f"----=_Part_{uuid.uuid4().hex}"
    chunks = [
        _part(boundary, [
            ("Content-Type", f"{root_content_type}; charset=UTF-8"),
            ("Content-Transfer-Encoding", "8bit"),
            ("Content-ID", ROOT_CONTENT_ID),
        ], root)
    ]
    for attachment in attachments:
        content = attachment.content.encode("utf-8") if isinstance(attachment.content, str) else attachment.content
        content_type = (attachment.content_type
                        or mimetypes.guess_type(attachment.filename)[0]
                        or "application/octet-stream")
        chunks.append(_part(boundary, [
            ("Content-Type", content_type),
            ("Content-Transfer-Encoding", "binary"),
            ("Content-Disposition", f'attachment; filename="{attachment.filename}"'),
            ("Content-ID", f"<{attachment.filename}>"),
        ], content))
    body = b"".join(chunks) + f"--{boundary}--\r\n".encode("ascii")
    content_type = (f'multipart/related; boundary="{boundary}"; '
                    f'type="{root_content_type}"; start="{ROOT_CONTENT_ID}"')
    return content_type, body


def _part(boundary: str, headers: List[Tuple[str, str]], content: bytes) -> bytes:
    head = "".join(f"{name}: {value}\r\n" for name, value in headers)
    return f"--{boundary}\r\n{head}\r\n".encode("utf-8") + content + b"\r\n"


def decode_parts(content_type: str, raw_body: bytes) -> List[MimePart]:
    """Splits a multipart body on the boundary from its Content-Type.

    Fails on a missing boundary parameter or a missing start/terminal
    boundary instead of returning whatever parts could be recovered.
    """
    preamble = f"Content-Type: {content_type}\r\nMIME-Version: 1.0\r\n\r\n".encode("latin-1")
    message = BytesParser(policy=policy.HTTP).parsebytes(preamble + raw_body)

    defects = [d for d in message.defects if isinstance(d, BOUNDARY_DEFECTS)]
    if defects:
        raise DecodeError(f"Malformed multipart response: {type(defects[0]).__name__}")
    if not message.is_multipart():
        raise DecodeError(f"Expected a multipart body for Content-Type {content_type!r}")

    parts = []
    for index, part in enumerate(message.iter_parts()):
        if any(isinstance(d, BOUNDARY_DEFECTS) for d in part.defects):
            raise DecodeError(f"Malformed multipart response in part {index}")
        content = part.get_payload(decode=True)
        if content is None:
            content = part.as_bytes()
        parts.append(MimePart(
            headers={name: str(value) for name, value in part.items()},
            content=content,
            content_type=part.get_content_type(),
            content_id=strip_content_id(part.get("Content-ID")),
        ))
    if not parts:
        raise DecodeError("Multipart response contains no parts")
    return parts
