"""MIME allow-lists and content sniffing for uploads and downloads."""

import mimetypes

import filetype

PDF = "application/pdf"
JPEG = "image/jpeg"
PNG = "image/png"
GIF = "image/gif"
TEXT = "text/plain"
DOC = "application/msword"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

GENERAL_MIME_TYPES = frozenset({PDF, JPEG, PNG, GIF, TEXT, DOC, DOCX})
PDF_ONLY = frozenset({PDF})
PREVIEWABLE_MIME_TYPES = frozenset({PDF, JPEG, PNG, GIF, TEXT})

# Sniffed types accepted for a recorded type. None means "not recognised".
MIME_VARIANTS: dict[str, frozenset[str | None]] = {
    PDF: frozenset({PDF}),
    JPEG: frozenset({JPEG, "image/jpg", "image/pjpeg"}),
    PNG: frozenset({PNG}),
    GIF: frozenset({GIF}),
    TEXT: frozenset({TEXT, "text/x-plain"}),
    DOC: frozenset({DOC, "application/x-ole-storage", "application/CDFV2", None}),
    DOCX: frozenset({DOCX, "application/zip"}),
}

_ALIASES = {
    "image/jpg": JPEG,
    "image/pjpeg": JPEG,
    "text/x-plain": TEXT,
}

SNIFF_BYTES = 8192


def normalize(content_type: str | None, filename: str | None = None) -> str | None:
    """Lower-case, drop parameters, fold aliases; fall back to the filename."""
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    if not mime or mime == "application/octet-stream":
        guessed = mimetypes.guess_type(filename)[0] if filename else None
        mime = (guessed or "").lower()
    if not mime:
        return None
    return _ALIASES.get(mime, mime)


def sniff(head: bytes) -> str | None:
    kind = filetype.guess(head) if head else None
    if kind is not None:
        return kind.mime
    if b"\x00" not in head:
        return TEXT
    return None


def is_compatible(recorded: str, sniffed: str | None) -> bool:
    allowed = MIME_VARIANTS.get(recorded)
    if allowed is None:
        return sniffed == recorded
    return sniffed in allowed


def extension_of(filename: str) -> str:
    _, dot, ext = filename.rpartition(".")
    if not dot or not ext or len(ext) > 16 or not ext.isalnum():
        return ""
    return ext.lower()
