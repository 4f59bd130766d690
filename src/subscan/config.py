"""Configuration loading, item-store I/O, and project initialization.

Reads TOML files using stdlib ``tomllib`` and writes them using
``tomli_w``.  Depends only on ``models.py``.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[no-redef]

import tomli_w

from subscan.models import (
    DEFAULT_BOILERPLATE_PHRASES,
    DEFAULT_NOISE_TOKENS,
    DEFAULT_RECURRENCE_HINTS,
    DEFAULT_SERVICES,
    FREQUENCIES,
    MONTHLY,
    ONCE,
    PLANNED_FREQUENCIES,
    UNKNOWN,
    AppConfig,
    EngineConfig,
    ExtractionConfig,
    PlannedItem,
    RecurringItem,
    ServicePattern,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Default file content
# ---------------------------------------------------------------------------

_DEFAULT_CONFIG_TOML = """\
# SubScan configuration

[general]
items_file = "items.toml"
candidate_limit = 25
reference_max_length = 120
shift_if_weekend = false        # default for newly confirmed items

[frequency]
annual_threshold = "1000"       # unknown-cadence candidates above this become annual

[keywords]
recurrence_hints = [
    "premium", "membership", "subscribe", "subscription", "auto-renew",
    "autorenew", "auto renew", "direct debit", "annual", "renewal", "plan",
]
noise_tokens = ["DIRECT DEBIT", "MASTERCARD", "VISA", "CARD", "POS", "DD"]
# boilerplate_phrases = ["sort code", "statement number"]

[dedup]
amount_tolerance = "0.10"       # relative difference below which names collide

[extraction]
provider = "plain"              # "plain" or "http"
url = ""
api_key_env = "SUBSCAN_EXTRACT_API_KEY"  # Name of env var containing the API key
timeout = 60

# Extra known services, checked before the built-in table.
# [[services]]
# pattern = "gousto"
# service = "Gousto"
# category = "Food"
# frequency = "weekly"
# amount_split = false
"""

_DEFAULT_ITEMS_TOML = """\
# Confirmed recurring items and planned expenses.
# Written by `subscan scan --save`; safe to hand-edit.
"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(root: Path) -> AppConfig:
    """Load ``config.toml`` from *root* and return an :class:`AppConfig`.

    Missing sections and keys fall back to the built-in defaults.  Services
    listed under ``[[services]]`` are checked before the built-in table.

    Args:
        root: Project root directory containing ``config.toml``.

    Returns:
        A fully-populated :class:`AppConfig` instance.

    Raises:
        FileNotFoundError: If ``config.toml`` does not exist.
        ValueError: If a numeric setting or a service frequency is invalid.
    """
    data = _read_toml(Path(root) / "config.toml")

    general = data.get("general", {})
    frequency = data.get("frequency", {})
    keywords = data.get("keywords", {})
    dedup = data.get("dedup", {})
    extraction = data.get("extraction", {})

    services = tuple(_parse_service(s) for s in data.get("services", []))

    engine = EngineConfig(
        recurrence_hints=tuple(
            h.lower() for h in keywords.get("recurrence_hints", DEFAULT_RECURRENCE_HINTS)
        ),
        noise_tokens=tuple(keywords.get("noise_tokens", DEFAULT_NOISE_TOKENS)),
        boilerplate_phrases=tuple(
            p.lower() for p in keywords.get("boilerplate_phrases", DEFAULT_BOILERPLATE_PHRASES)
        ),
        services=services + DEFAULT_SERVICES,
        candidate_limit=int(general.get("candidate_limit", 25)),
        reference_max_length=int(general.get("reference_max_length", 120)),
        annual_threshold=_to_decimal(frequency.get("annual_threshold", "1000"), "annual_threshold"),
        amount_tolerance=_to_decimal(dedup.get("amount_tolerance", "0.10"), "amount_tolerance"),
    )

    return AppConfig(
        engine=engine,
        extraction=ExtractionConfig(
            provider=extraction.get("provider", "plain"),
            url=extraction.get("url", ""),
            api_key_env=extraction.get("api_key_env", ""),
            timeout=float(extraction.get("timeout", 60.0)),
        ),
        items_file=general.get("items_file", "items.toml"),
        shift_if_weekend=bool(general.get("shift_if_weekend", False)),
    )


def initialize(target_dir: Path) -> None:
    """Create default ``config.toml`` and ``items.toml`` in *target_dir*.

    Idempotent: existing files are **not** overwritten.

    Args:
        target_dir: The directory in which to create the project files.
    """
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    _write_if_missing(target_dir / "config.toml", _DEFAULT_CONFIG_TOML)
    _write_if_missing(target_dir / "items.toml", _DEFAULT_ITEMS_TOML)


def load_items(path: Path) -> tuple[list[RecurringItem], list[PlannedItem]]:
    """Read the local item store.

    Args:
        path: Path of ``items.toml``.  A missing file is an empty store.

    Returns:
        ``(recurring_items, planned_items)`` in file order.

    Raises:
        ValueError: If an entry has an invalid amount or frequency.
    """
    path = Path(path)
    if not path.exists():
        logger.info("No item store at %s", path)
        return [], []

    data = _read_toml(path)
    items = [_parse_item(entry) for entry in data.get("items", [])]
    planned = [_parse_planned(entry) for entry in data.get("planned", [])]
    logger.debug("Loaded %d item(s) and %d planned item(s) from %s", len(items), len(planned), path)
    return items, planned


def save_items(
    path: Path,
    items: Iterable[RecurringItem],
    planned: Iterable[PlannedItem] = (),
) -> None:
    """Write *items* and *planned* to the item store, replacing its content.

    Amounts are stored as strings so :class:`~decimal.Decimal` precision
    survives the round trip; dates are native TOML dates; unset fields
    are omitted.
    """
    doc: dict = {
        "items": [_item_to_dict(i) for i in items],
        "planned": [_planned_to_dict(p) for p in planned],
    }
    doc = {k: v for k, v in doc.items() if v}
    Path(path).write_text(_DEFAULT_ITEMS_TOML + "\n" + tomli_w.dumps(doc), encoding="utf-8")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_toml(path: Path) -> dict:
    """Read and parse a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _write_if_missing(path: Path, content: str) -> None:
    """Write *content* to *path* only if the file does not already exist."""
    if not path.exists():
        path.write_text(content, encoding="utf-8")


def _to_decimal(value: object, field_name: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{field_name}: not a number: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"{field_name}: not a finite number: {value!r}")
    return result


def _check_frequency(value: str, allowed: tuple[str, ...], field_name: str) -> str:
    if value not in allowed:
        raise ValueError(f"{field_name}: expected one of {', '.join(allowed)}, got {value!r}")
    return value


def _parse_service(entry: dict) -> ServicePattern:
    return ServicePattern(
        pattern=entry["pattern"],
        service=entry["service"],
        category=entry.get("category", "other"),
        frequency=_check_frequency(entry.get("frequency", UNKNOWN), FREQUENCIES, "services"),
        amount_split=bool(entry.get("amount_split", False)),
    )


def _parse_item(entry: dict) -> RecurringItem:
    return RecurringItem(
        id=entry["id"],
        name=entry["name"],
        raw_amount=_to_decimal(entry["amount"], "items.amount"),
        frequency=_check_frequency(entry.get("frequency", MONTHLY), FREQUENCIES, "items.frequency"),
        category=entry.get("category", "other"),
        billing_day=entry.get("billing_day"),
        next_billing_date=entry.get("next_billing_date"),
        last_used_date=entry.get("last_used_date"),
        sign_up_date=entry.get("sign_up_date"),
        paused_until=entry.get("paused_until"),
        shift_if_weekend=bool(entry.get("shift_if_weekend", False)),
        aliases=tuple(entry.get("aliases", ())),
    )


def _parse_planned(entry: dict) -> PlannedItem:
    return PlannedItem(
        id=entry["id"],
        name=entry["name"],
        amount=_to_decimal(entry["amount"], "planned.amount"),
        frequency=_check_frequency(
            entry.get("frequency", ONCE), PLANNED_FREQUENCIES, "planned.frequency"
        ),
        category=entry.get("category", "other"),
        date=entry.get("date"),
        day_of_month=entry.get("day_of_month"),
        start=entry.get("start"),
        end=entry.get("end"),
        shift_if_weekend=bool(entry.get("shift_if_weekend", False)),
    )


def _drop_none(d: dict) -> dict:
    return {k: v for k, v in d.items() if v is not None}


def _item_to_dict(item: RecurringItem) -> dict:
    d = _drop_none(
        {
            "id": item.id,
            "name": item.name,
            "amount": str(item.raw_amount),
            "frequency": item.frequency,
            "category": item.category,
            "billing_day": item.billing_day,
            "next_billing_date": item.next_billing_date,
            "last_used_date": item.last_used_date,
            "sign_up_date": item.sign_up_date,
            "paused_until": item.paused_until,
        }
    )
    if item.shift_if_weekend:
        d["shift_if_weekend"] = True
    if item.aliases:
        d["aliases"] = list(item.aliases)
    return d


def _planned_to_dict(item: PlannedItem) -> dict:
    d = _drop_none(
        {
            "id": item.id,
            "name": item.name,
            "amount": str(item.amount),
            "frequency": item.frequency,
            "category": item.category,
            "date": item.date,
            "day_of_month": item.day_of_month,
            "start": item.start,
            "end": item.end,
        }
    )
    if item.shift_if_weekend:
        d["shift_if_weekend"] = True
    return d
