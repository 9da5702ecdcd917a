import base64
import binascii
import re
import secrets
from pathlib import Path
from typing import Optional, Tuple

from codeshare.errors import InvalidInput

# Code space
CODE_MIN: int = 1000
CODE_MAX: int = 9999
CODE_PATTERN: re.Pattern = re.compile(r"[0-9]{4}")

# Limits
SHARE_TTL_SECONDS: int = 2 * 60 * 60
MAX_FILE_BYTES: int = 10 * 1024 * 1024  # 10 MB
MAX_TEXT_CHARS: int = 1_000_000
MAX_CODE_ATTEMPTS: int = 50
SWEEP_BATCH_SIZE: int = 200

DEFAULT_FILE_NAME: str = "file"

DATA_URL_PATTERN: re.Pattern = re.compile(
    r"^data:(?P<mime>[\w.+\-]+/[\w.+\-]+)?(?P<params>(;[\w\-]+=[^;,]*)*)(?P<b64>;base64)?,(?P<data>.*)$",
    re.DOTALL,
)


def generate_code() -> str:
    """Draw a candidate code uniformly from [CODE_MIN, CODE_MAX]."""
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def normalize_code(code: Optional[str]) -> str:
    """Return the stripped code or raise InvalidInput if it is not 4 digits."""
    candidate = (code or "").strip()
    if not CODE_PATTERN.fullmatch(candidate):
        raise InvalidInput(
            f"Invalid code: '{candidate}'.\n"
            f"    → Enter the 4-digit code you were given, e.g. 4821."
        )
    return candidate


def validate_payload(
    text: Optional[str],
    data: Optional[bytes],
    max_file_bytes: int = MAX_FILE_BYTES,
    max_text_chars: int = MAX_TEXT_CHARS,
) -> None:
    """Raise InvalidInput unless there is something meaningful to share."""
    has_text = bool(text)
    has_file = bool(data)

    if not has_text and not has_file:
        raise InvalidInput(
            "Nothing to share.\n"
            "    → Provide some text or attach a file."
        )
    if has_file and len(data) > max_file_bytes:
        raise InvalidInput(
            f"File too large: {len(data)} bytes (max {max_file_bytes // (1024 * 1024)} MB).\n"
            f"    → Share a smaller file."
        )
    if has_text and len(text) > max_text_chars:
        raise InvalidInput(
            f"Text too long: {len(text)} characters (max {max_text_chars}).\n"
            f"    → Trim the text or share it as a file."
        )


def sanitize_filename(name: Optional[str]) -> str:
    """Strip path components, control chars, and limit length."""
    if not name:
        return ""
    name = Path(name.replace("\\", "/")).name
    name = re.sub(r"[^\w\s\-.]", "", name)
    name = re.sub(r"\.{2,}", ".", name)
    return name[:128].strip()


def decode_data_url(value: str) -> Tuple[bytes, Optional[str]]:
    """
    Decode a ``data:`` URL into raw bytes and its MIME type.

    Example: data:text/plain;base64,aGk=  →  (b"hi", "text/plain")
    """
    match = DATA_URL_PATTERN.match(value or "")
    if not match:
        raise InvalidInput(
            "File must be sent as a data URL.\n"
            "    → Example: data:image/png;base64,iVBORw0KGgo..."
        )
    payload = match.group("data")
    if match.group("b64"):
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            raise InvalidInput(
                "File data URL is not valid base64.\n"
                "    → Re-read the file and try again."
            )
    else:
        data = payload.encode("utf-8")
    return data, match.group("mime")


def parse_int(value: Optional[str], default: int, min_v: int = 1) -> int:
    """Parse an int from config input, fall back to *default*, never raise."""
    try:
        v = int(value)
    except (TypeError, ValueError):
        return default
    return v if v >= min_v else default


def format_size(num_bytes: int) -> str:
    """Human-readable byte count: 3 → '3 B', 2048 → '2.00 KB'."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.2f} KB"
    return f"{num_bytes / (1024 * 1024):.2f} MB"


def describe_duration(seconds: int) -> str:
    """7200 → '2 hours', 3600 → '1 hour', 90 → '1 minute'."""
    if seconds >= 3600 and seconds % 3600 == 0:
        n, unit = seconds // 3600, "hour"
    else:
        n, unit = max(1, seconds // 60), "minute"
    return f"{n} {unit}" + ("" if n == 1 else "s")
