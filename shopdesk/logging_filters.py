# --- Global log sanitizer: trims HTML error pages and hides the backend key ------
import logging, re

from shopdesk.config import settings

_HTML_SIG_RE = re.compile(r'(?is)<!DOCTYPE html|<html[^>]*>')
_TITLE_RE    = re.compile(r'(?is)<title[^>]*>(.*?)</title>')
_TAG_RE      = re.compile(r'(?is)<[^>]+>')
_SCRIPT_RE   = re.compile(r'(?is)<(script|style)[^>]*>.*?</\1>')


def _strip_tags(s: str) -> str:
    s = _SCRIPT_RE.sub('', s)
    s = _TAG_RE.sub(' ', s)
    return re.sub(r'\s+', ' ', s).strip()


def _summarize_html(s: str, limit: int = 200) -> str:
    title = None
    m = _TITLE_RE.search(s)
    if m:
        title = _strip_tags(m.group(1))
    preview = title or _strip_tags(s)[:limit]
    return f"{preview} [HTML {len(s)} chars trimmed]"


def _secrets() -> list[str]:
    return [s for s in (settings.BACKEND_API_KEY, settings.BACKEND_SERVICE_TOKEN) if s and len(s) >= 8]


def sanitize(msg: str) -> str:
    """Collapse HTML blobs and mask configured backend credentials."""
    if len(msg) > 200 and _HTML_SIG_RE.search(msg):
        msg = _summarize_html(msg)
    for secret in _secrets():
        msg = msg.replace(secret, "<redacted>")
    return msg


class _SanitizeFilter(logging.Filter):
    """Rewrite records whose message carries an HTML page or a backend key."""
    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except Exception:
            return True
        if isinstance(msg, str):
            clean = sanitize(msg)
            if clean != msg:
                record.msg = clean
                record.args = ()
        return True


def install() -> None:
    # install once on common loggers (root + uvicorn family)
    for name in ("", "uvicorn", "uvicorn.error"):
        lg = logging.getLogger(name)
        if not any(isinstance(f, _SanitizeFilter) for f in lg.filters):
            lg.addFilter(_SanitizeFilter())
