import re
import unicodedata


def slugify(value: str, separator: str = "-") -> str:
    """Lowercase, ASCII-only, separator-joined slug; empty input gives an empty slug."""
    value = unicodedata.normalize("NFKD", str(value or ""))
    value = value.encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-zA-Z0-9\-_\s]+", "", value)
    value = value.strip().lower()
    value = re.sub(r"[\s\-_]+", separator, value)
    return value.strip(separator)
