import mimetypes
import re
from pathlib import PurePosixPath
from urllib.parse import unquote, urlsplit

_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,5}$")
_UNSAFE_RE = re.compile(r'[\x00-\x1f\\/:*?"<>|]')
GENERIC_CONTENT_TYPES = {"application/octet-stream", "binary/octet-stream"}


def sanitize_filename(name: str) -> str:
    cleaned = _UNSAFE_RE.sub("_", name).strip()
    return cleaned or "document"


def _is_extension(suffix: str) -> bool:
    """A short dotted suffix with a letter in it, or one mimetypes knows; ``.2`` in ``v1.2`` is neither."""
    if not _EXTENSION_RE.match(suffix):
        return False
    return suffix.lower() in mimetypes.types_map or any(ch.isalpha() for ch in suffix)


def has_extension(name: str) -> bool:
    return _is_extension(PurePosixPath(name).suffix)


def base_content_type(content_type: str | None) -> str:
    return (content_type or "").split(";")[0].strip().lower()


def extension_for(content_type: str | None, url: str | None = None, default: str = ".pdf") -> str:
    """Pick a file extension from the content type, then the URL path, then ``default``."""
    ctype = base_content_type(content_type)
    if ctype and ctype not in GENERIC_CONTENT_TYPES:
        guessed = mimetypes.guess_extension(ctype)
        if guessed:
            return guessed
    if url:
        suffix = PurePosixPath(urlsplit(url).path).suffix
        if _is_extension(suffix):
            return suffix.lower()
    return default


def filename_from_url(url: str) -> str:
    name = unquote(PurePosixPath(urlsplit(url).path).name)
    return sanitize_filename(name) if name else "document"


def compose_filename(company_name: str | None, name: str, content_type: str | None, url: str | None = None) -> str:
    """Build ``"<company> - <name>"``, appending an extension when ``name`` has none."""
    base = f"{company_name} - {name}" if company_name else name
    if not has_extension(name):
        base += extension_for(content_type, url)
    return sanitize_filename(base)
