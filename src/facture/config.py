from __future__ import annotations

import os
import re
from pathlib import Path
from zoneinfo import ZoneInfo

import platformdirs
import yaml
from dotenv import load_dotenv

from facture.services.exceptions import ValidationError

APP_NAME = "facture"


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Resolve config dir for .env loading without depending on env vars from .env itself.

    Only checks sources available before .env is loaded (env var set in the
    shell, dev layout, an existing platformdirs directory).
    """
    from_env = os.environ.get("FACTURE_CONFIG_DIR")
    if from_env:
        return Path(from_env)
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    pd = Path(platformdirs.user_config_dir(APP_NAME))
    if pd.is_dir():
        return pd
    return None


# Load .env: cwd first (highest priority), then config dir (won't override)
load_dotenv()
_cfg_dir = _resolve_config_dir_for_dotenv()
if _cfg_dir is not None:
    load_dotenv(_cfg_dir / ".env")


def _resolve_dir(env_var: str, default_subdir: str, kind: str) -> Path:
    """Resolve a directory from env var, repo layout, or platform default.

    Priority: 1) env var, 2) dev repo layout, 3) platformdirs user directory.
    """
    from_env = os.environ.get(env_var)
    if from_env:
        return Path(from_env)
    # Development layout: src/facture/config.py -> ../../.. = project root
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / default_subdir
    if candidate.is_dir():
        return candidate
    if kind == "config":
        return Path(platformdirs.user_config_dir(APP_NAME))
    return Path(platformdirs.user_data_dir(APP_NAME))


def get_config_dir() -> Path:
    """Resolve config directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("FACTURE_CONFIG_DIR", "config", kind="config")


def get_data_dir() -> Path:
    """Resolve data directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("FACTURE_DATA_DIR", "data", kind="data")


# Invoice dates and counter periods follow the local calendar of the province.
PROVINCE_TIMEZONES = {
    "ON": ZoneInfo("America/Toronto"),
    "QC": ZoneInfo("America/Toronto"),
    "NB": ZoneInfo("America/Halifax"),
    "NS": ZoneInfo("America/Halifax"),
}

PDF_TIMEOUT = 60
DEFAULT_LOCK_TIMEOUT = 10.0


def get_pdf_url() -> str | None:
    """Return the HTML-to-PDF endpoint from FACTURE_PDF_URL, or None when unset."""
    url = os.environ.get("FACTURE_PDF_URL", "").strip()
    return url or None


def get_lock_timeout() -> float:
    """Seconds to wait for a store lock before giving up (FACTURE_LOCK_TIMEOUT)."""
    raw = os.environ.get("FACTURE_LOCK_TIMEOUT")
    if not raw:
        return DEFAULT_LOCK_TIMEOUT
    try:
        return float(raw)
    except ValueError:
        return DEFAULT_LOCK_TIMEOUT


def get_default_due_days() -> int | None:
    """Days between invoice date and due date (FACTURE_DUE_DAYS), None for no due date."""
    raw = os.environ.get("FACTURE_DUE_DAYS", "").strip()
    if not raw:
        return None
    if not raw.isdigit() or int(raw) > 3650:
        raise ValidationError(f"FACTURE_DUE_DAYS must be a whole number of days (0-3650), got '{raw}'")
    return int(raw)


# --- YAML files ---


class _Loader(yaml.SafeLoader):
    """SafeLoader with YAML 1.2 booleans: only true/false, so `province: ON` stays a string."""


_Loader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:bool"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_Loader.add_implicit_resolver(
    "tag:yaml.org,2002:bool",
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


def parse_yaml(text: str):
    return yaml.load(text, Loader=_Loader)


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict."""
    return parse_yaml(path.read_text(encoding="utf-8"))


def load_service_catalogue(path: Path | None = None) -> list[dict]:
    """Load the service seed list, defaulting to the bundled templates/services.yaml."""
    if path is None:
        from importlib.resources import files

        text = (files("facture") / "templates" / "services.yaml").read_text(encoding="utf-8")
        data = parse_yaml(text)
    else:
        data = load_yaml(path)
    return list(data.get("services", []))
