"""
PI Vision deep links for scheme, village and ESR dashboards.

Every link points a kiosk-mode PI Vision display at an element of the AF
asset tree:

    \\\\DemoAF\\JJM\\JJM\\Maharashtra\\Region-{region}\\Circle-{circle}\\
    Division-{division}\\Sub Division-{sub_division}\\Block-{block}\\
    Scheme-{scheme_id} - {scheme_name}[\\{village}[\\{esr}]]

The path is percent-encoded the way a browser's encodeURIComponent does, so
links stored by earlier tooling compare equal to links built here.
"""

import logging
from typing import Any
from urllib.parse import parse_qs, quote, urlsplit

from .config import (
    COMPACT_SCHEME_SEPARATOR_REGIONS,
    ESR_DISPLAY,
    ESR_KIOSK_PARAMS,
    KIOSK_PARAMS,
    PI_ROOT_PATH,
    PI_VISION_BASE_URL,
    SCHEME_DISPLAY,
    SPECIAL_SCHEME_PATHS,
    URL_REGION_SUBSTITUTIONS,
    VILLAGE_DISPLAY,
)

logger = logging.getLogger(__name__)

HIERARCHY_LEVELS = [
    ("region", "Region"),
    ("circle", "Circle"),
    ("division", "Division"),
    ("sub_division", "Sub Division"),
    ("block", "Block"),
]

# encodeURIComponent leaves these unescaped
_URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_uri_component(text: str) -> str:
    return quote(text, safe=_URI_COMPONENT_SAFE)


def _text(val: Any) -> str | None:
    if val is None:
        return None
    s = str(val).strip()
    return s or None


def _special_scheme(record: dict[str, Any]) -> dict[str, str] | None:
    special = SPECIAL_SCHEME_PATHS.get(_text(record.get("scheme_id")) or "")
    scheme_name = _text(record.get("scheme_name"))
    if special is None or scheme_name is None or special["match"] not in scheme_name:
        return None
    return special


def scheme_path(record: dict[str, Any], fill_unknown: bool = True) -> str | None:
    """AF path of a scheme element.

    Missing hierarchy levels become 'Unknown {Level}' when `fill_unknown`,
    otherwise the path is None. A record without scheme_id has no path.
    """
    scheme_id = _text(record.get("scheme_id"))
    if scheme_id is None:
        return None

    special = _special_scheme(record)
    if special is not None:
        return special["path"]

    segments = []
    for key, label in HIERARCHY_LEVELS:
        value = _text(record.get(key))
        if value is None:
            if not fill_unknown:
                return None
            value = f"Unknown {label}"
        if key == "region":
            value = URL_REGION_SUBSTITUTIONS.get(value, value)
        segments.append(f"{label}-{value}")

    scheme_name = _text(record.get("scheme_name"))
    if scheme_name is None:
        if not fill_unknown:
            return None
        scheme_name = f"Unknown Scheme {scheme_id}"
    region = _text(record.get("region"))
    separator = "-" if region in COMPACT_SCHEME_SEPARATOR_REGIONS else " - "
    segments.append(f"Scheme-{scheme_id}{separator}{scheme_name}")

    return "\\".join([PI_ROOT_PATH, *segments])


def element_path(record: dict[str, Any], *names: str) -> str | None:
    """AF path of an element below a scheme (village, then ESR).

    None when any hierarchy level is missing.
    """
    path = scheme_path(record, fill_unknown=False)
    if path is None:
        return None
    special = _special_scheme(record)
    separator = special["separator"] if special is not None else "\\"
    return separator.join([path, *names])


def _display_url(display: str, params: str, key: str, path: str) -> str:
    return f"{PI_VISION_BASE_URL}/#/Displays/{display}?{params}&{key}={encode_uri_component(path)}"


def scheme_dashboard_url(scheme: dict[str, Any]) -> str | None:
    """Scheme-level PI Vision link; None without a scheme_id."""
    path = scheme_path(scheme, fill_unknown=True)
    if path is None:
        return None
    return _display_url(SCHEME_DISPLAY, KIOSK_PARAMS, "rootpath", path)


def village_dashboard_url(village: dict[str, Any]) -> str | None:
    """Village-level link; None (with a warning) when any level is missing."""
    village_name = _text(village.get("village_name"))
    path = element_path(village, village_name) if village_name else None
    if path is None:
        logger.warning(
            "Cannot build URL for village %s of scheme %s: missing hierarchy",
            village_name, village.get("scheme_id"),
        )
        return None
    return _display_url(VILLAGE_DISPLAY, KIOSK_PARAMS, "rootpath", path)


def esr_dashboard_url(esr: dict[str, Any]) -> str | None:
    """ESR-level link; None (with a warning) when any level is missing."""
    village_name = _text(esr.get("village_name"))
    esr_name = _text(esr.get("esr_name"))
    path = element_path(esr, village_name, esr_name) if village_name and esr_name else None
    if path is None:
        logger.warning(
            "Cannot build URL for ESR %s in village %s: missing hierarchy",
            esr_name, village_name,
        )
        return None
    return _display_url(ESR_DISPLAY, ESR_KIOSK_PARAMS, "asset", path)


def rootpath_from_url(url: str) -> str | None:
    """Decode the AF path carried by a link's rootpath or asset parameter."""
    query = urlsplit(url).query
    if not query:
        # PI Vision puts the query after the '#/Displays/...' fragment
        _, _, query = url.partition("?")
    params = parse_qs(query, keep_blank_values=True)
    for key in ("rootpath", "asset"):
        if key in params:
            return params[key][0]
    return None
