"""
Cell normalisation: URL / filename detection, amounts, dates, reviewer names.
"""
from __future__ import annotations

import re
from urllib.parse import parse_qs, unquote, urlencode, urlparse, urlunparse

import pandas as pd

from fundtrack.config import SHAREPOINT_TENANT


# ---------------------------------------------------------------------------
# Attachment detection
# ---------------------------------------------------------------------------

_URL_PREFIX_RE = re.compile(r"^(https?://|www\.|/(sites|teams)/)", re.IGNORECASE)
_URL_HOST_RE = re.compile(r"sharepoint\.com|drive\.google\.com|onedrive\.live\.com|dropbox\.com", re.IGNORECASE)
_FILE_EXT_RE = re.compile(r"\.(pdf|docx?|pptx?|zip|xlsx?)$", re.IGNORECASE)


def looks_like_url(value) -> bool:
    """Full URLs, SharePoint site paths and common file-sharing hosts."""
    if value is None:
        return False
    s = str(value).strip()
    if not s:
        return False
    return bool(_URL_PREFIX_RE.search(s) or _URL_HOST_RE.search(s))


def looks_like_filename(value) -> bool:
    """Attachment names (pdf/doc/zip ...) or anything carrying a path separator."""
    if value is None:
        return False
    s = str(value).strip()
    if not s:
        return False
    if _FILE_EXT_RE.search(s):
        return True
    return "\\" in s or "/" in s


def is_file_like(value) -> bool:
    return looks_like_filename(value) or looks_like_url(value)


# ---------------------------------------------------------------------------
# SharePoint links
# ---------------------------------------------------------------------------

def canonicalize_sharepoint_link(raw: str | None) -> str | None:
    """Rewrite SharePoint links to a browsable https URL on the tenant host."""
    if not raw:
        return raw
    site_prefix = f"https://{SHAREPOINT_TENANT}"
    url = str(raw).strip().replace("&amp%3B", "&").replace("&amp;", "&")

    if re.match(r"^/(sites|teams)/", url, re.IGNORECASE):
        sep = "&" if "?" in url else "?"
        return f"{site_prefix}{url}{sep}web=1"

    # sharing links such as /:b:/r/sites/...
    if "/:" in url:
        m = re.search(r"/sites/[^?]+", unquote(url))
        if m:
            clean = m.group(0).replace("/r/", "/").replace("/:b:/", "/")
            return f"{site_prefix}{clean}"

    if not re.match(r"^https?://", url, re.IGNORECASE):
        url = "https://" + url

    try:
        parsed = urlparse(url)
    except ValueError:
        return raw
    query = parse_qs(parsed.query)
    doc_id = (query.get("id") or query.get("Id") or [None])[0]
    if doc_id:
        return f"{site_prefix}{unquote(doc_id)}?web=1"

    if "sharepoint.com" in (parsed.hostname or ""):
        if "web" not in query:
            query["web"] = ["1"]
        parsed = parsed._replace(netloc=SHAREPOINT_TENANT, query=urlencode(query, doseq=True))
        return urlunparse(parsed)

    return urlunparse(parsed)


# ---------------------------------------------------------------------------
# Amounts and dates
# ---------------------------------------------------------------------------

def parse_amount(value) -> float | None:
    """Numeric value of a money-ish cell ("$12,500.00" -> 12500.0), else None."""
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return None if pd.isna(value) else float(value)
    cleaned = re.sub(r"[^0-9.\-]", "", str(value))
    if cleaned in ("", "-", ".", "-."):
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def to_ymd(value) -> str:
    """ISO yyyy-mm-dd for anything date-like, "" when unparseable."""
    if value is None:
        return ""
    s = str(value).strip()
    if not s:
        return ""
    if re.fullmatch(r"\d{4}-\d{2}-\d{2}", s):
        return s
    ts = pd.to_datetime(s, errors="coerce")
    if pd.isna(ts):
        return ""
    return ts.date().isoformat()


# ---------------------------------------------------------------------------
# Names
# ---------------------------------------------------------------------------

def first_name(name) -> str:
    """Lower-cased first token of a reviewer name."""
    if not name:
        return ""
    parts = str(name).strip().split()
    return parts[0].lower() if parts else ""


def split_names(raw: str | None) -> list[str]:
    """Comma / newline separated list -> trimmed names, duplicates removed."""
    if not raw:
        return []
    names = [n.strip() for n in re.split(r"[\n,]", str(raw))]
    return list(dict.fromkeys(n for n in names if n))
