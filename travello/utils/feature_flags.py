"""
Feature switches for the Travello chat relay, read from ``ENABLE_<FLAG>``.
"""
import os
from typing import Dict, Mapping, Optional

DEFAULT_FLAGS: Dict[str, bool] = {
    # Call the configured model endpoint; off means keyword replies only.
    "use_live_generation": True,
}

_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}

FEATURE_FLAGS: Dict[str, bool] = dict(DEFAULT_FLAGS)


def _parse_switch(raw: Optional[str], default: bool) -> bool:
    value = (raw or "").strip().lower()
    if value in _TRUE_WORDS:
        return True
    if value in _FALSE_WORDS:
        return False
    return default


def init_feature_flags(env: Optional[Mapping[str, str]] = None) -> Dict[str, bool]:
    """Resolve every known flag from ``env`` (the process environment by default).

    Unset or unrecognised values keep the flag's default.
    """
    env = os.environ if env is None else env
    for flag_name, default in DEFAULT_FLAGS.items():
        FEATURE_FLAGS[flag_name] = _parse_switch(env.get(f"ENABLE_{flag_name.upper()}"), default)
    return dict(FEATURE_FLAGS)


def is_feature_enabled(feature_name: str) -> bool:
    return FEATURE_FLAGS.get(feature_name, False)
