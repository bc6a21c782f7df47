"""
Country name reference data (English, Turkish and native names by provider id).

Loaded once from muezzin/data/countries.yaml; the mapping is read-only afterwards.
"""
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_PATH = Path(__file__).resolve().parent.parent / "data" / "countries.yaml"


class CountryNames(NamedTuple):
    name: str
    tr_name: str
    native_name: str


_country_names: Optional[Mapping[int, CountryNames]] = None


def load_country_names(path: Optional[Path] = None) -> Mapping[int, CountryNames]:
    """Read the reference file and return an immutable id -> CountryNames mapping."""
    path = Path(path) if path else DEFAULT_PATH
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    names = {}
    for country_id, values in (data.get("countries") or {}).items():
        name, tr_name, native_name = values
        names[int(country_id)] = CountryNames(name, tr_name, native_name)
    logger.info(f"Loaded {len(names)} country names from {path}")
    return MappingProxyType(names)


def get_country_names() -> Mapping[int, CountryNames]:
    """Return the process-wide reference mapping, loading it on first use."""
    global _country_names
    if _country_names is None:
        _country_names = load_country_names()
    return _country_names
