import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import ValidationError

from to_ynab import config
from to_ynab.models import SourceConfig

logger = logging.getLogger(__name__)

# Same shape as the entries of the custom sources file
BUILTIN_SOURCES = {
    "nordea": {
        "headers": ["Bogført", "Tekst", "Rentedato", "Beløb", "Saldo"],
        "map": {
            "date": 0,
            "payee": None,
            "category": None,
            "memo": 1,
            "outflow": 3,
            "inflow": 3,
        },
        "dateformat": "DD-MM-YYYY",
        "delimitor": ";",
    },
    "be_kbc": {
        "headers": [
            "Rekeningnummer",
            "Rubrieknaam",
            "Naam",
            "Munt",
            "Afschriftnummer",
            "Datum",
            "Omschrijving",
            "Valuta",
            "Bedrag",
            "Saldo",
            "credit",
            "debet",
            "rekeningnummer tegenpartij",
            "BIC tegenpartij",
            "Naam tegenpartij",
            "Adres tegenpartij",
            "gestructureerde mededeling",
            "Vrije mededeling",
        ],
        "map": {
            "date": 7,
            "payee": None,
            "category": None,
            "memo": 6,
            "outflow": 8,
            "inflow": 8,
        },
        "dateformat": "DD/MM/YYYY",
        "delimitor": ";",
    },
    "be_kbc_creditcard": {
        "headers": [
            "Kaartnummer",
            "Naam kaarthouder",
            "Uitgavenstaat",
            "Datum verrichting",
            "Datum verrekening",
            "Omschrijving",
            "Locatie",
            "Bedrag in EUR",
            "Munt",
            "Bedrag in munt",
            "Koers",
        ],
        "map": {
            "date": 3,
            "payee": None,
            "category": None,
            "memo": 5,
            "outflow": 7,
            "inflow": 7,
        },
        "dateformat": "DD/MM/YYYY",
        "delimitor": ";",
    },
}


def parse_sources(raw_sources: dict, origin: str) -> dict[str, SourceConfig]:
    """Validate a name -> source table, skipping entries that are not valid source configs."""
    sources = {}
    for name, raw_source in raw_sources.items():
        try:
            sources[name] = SourceConfig.model_validate(raw_source)
        except ValidationError as e:
            logger.warning(f"Skipping source '{name}' from {origin}: {e}")
    return sources


def load_custom_sources(path: Path) -> dict[str, SourceConfig]:
    if not path.exists():
        return {}
    try:
        raw_sources = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read custom sources from {path}: {e}")
        return {}
    if not isinstance(raw_sources, dict):
        logger.warning(f"Custom sources file {path} must contain a JSON object")
        return {}
    return parse_sources(raw_sources, origin=str(path))


def load_registry(
    include_custom: bool = True, custom_path: Optional[Path] = None
) -> Mapping[str, SourceConfig]:
    """Build the read-only source registry.

    Built-in sources come first, in their declared order. When include_custom is
    set, the user's sources file is merged on top: entries with a built-in name
    replace the built-in, new names are appended. Callers build the registry
    once and pass it to every conversion.
    """
    sources = parse_sources(BUILTIN_SOURCES, origin="built-in sources")
    if include_custom:
        custom_sources = load_custom_sources(custom_path or config.CUSTOM_SOURCES_PATH)
        if custom_sources:
            logger.debug(f"Loaded custom sources: {list(custom_sources)}")
        sources.update(custom_sources)
    return MappingProxyType(sources)
