"""Tests for subscan.config — loading, item-store I/O, and initialization."""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from subscan.config import initialize, load_config, load_items, save_items
from subscan.models import (
    ANNUAL,
    DEFAULT_RECURRENCE_HINTS,
    DEFAULT_SERVICES,
    MONTHLY,
    WEEKLY,
    AppConfig,
    PlannedItem,
)

# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for loading config.toml into an AppConfig."""

    def test_loads_default_config(self, project_dir: Path):
        """Default config.toml produced by initialize() is loadable."""
        config = load_config(project_dir)

        assert isinstance(config, AppConfig)
        assert config.items_file == "items.toml"
        assert config.shift_if_weekend is False
        assert config.engine.candidate_limit == 25
        assert config.engine.reference_max_length == 120
        assert config.engine.annual_threshold == Decimal("1000")
        assert config.engine.amount_tolerance == Decimal("0.10")
        assert config.engine.recurrence_hints == DEFAULT_RECURRENCE_HINTS
        assert config.engine.services == DEFAULT_SERVICES

    def test_extraction_settings(self, project_dir: Path):
        """Extraction settings are loaded correctly."""
        extraction = load_config(project_dir).extraction
        assert extraction.provider == "plain"
        assert extraction.url == ""
        assert extraction.api_key_env == "SUBSCAN_EXTRACT_API_KEY"
        assert extraction.timeout == 60.0

    def test_custom_config(self, tmp_path: Path):
        """A hand-crafted config.toml loads with the correct values."""
        (tmp_path / "config.toml").write_text(
            """\
[general]
items_file = "my-items.toml"
candidate_limit = 10
shift_if_weekend = true

[frequency]
annual_threshold = "750"

[keywords]
recurrence_hints = ["Membership", "box"]

[extraction]
provider = "http"
url = "http://localhost:8080/extract"
timeout = 5

[[services]]
pattern = "gousto"
service = "Gousto"
category = "Food"
frequency = "weekly"
"""
        )
        config = load_config(tmp_path)

        assert config.items_file == "my-items.toml"
        assert config.shift_if_weekend is True
        assert config.engine.candidate_limit == 10
        assert config.engine.annual_threshold == Decimal("750")
        assert config.engine.recurrence_hints == ("membership", "box")
        assert config.extraction.provider == "http"
        assert config.extraction.timeout == 5.0
        assert config.extraction.api_key_env == ""

        gousto = config.engine.services[0]
        assert gousto.service == "Gousto"
        assert gousto.frequency == WEEKLY
        assert len(config.engine.services) == len(DEFAULT_SERVICES) + 1

    def test_empty_config_uses_defaults(self, tmp_path: Path):
        (tmp_path / "config.toml").write_text("")
        config = load_config(tmp_path)
        assert config.engine.candidate_limit == 25
        assert config.extraction.provider == "plain"

    def test_invalid_service_frequency(self, tmp_path: Path):
        (tmp_path / "config.toml").write_text(
            '[[services]]\npattern = "x"\nservice = "X"\nfrequency = "fortnightly"\n'
        )
        with pytest.raises(ValueError, match="services"):
            load_config(tmp_path)

    def test_invalid_tolerance(self, tmp_path: Path):
        (tmp_path / "config.toml").write_text('[dedup]\namount_tolerance = "lots"\n')
        with pytest.raises(ValueError, match="amount_tolerance"):
            load_config(tmp_path)

    def test_missing_config(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path)


# ---------------------------------------------------------------------------
# Item store
# ---------------------------------------------------------------------------


class TestItemStore:
    """Tests for reading and writing items.toml."""

    def test_missing_file_is_empty(self, tmp_path: Path):
        assert load_items(tmp_path / "items.toml") == ([], [])

    def test_fresh_store_is_empty(self, project_dir: Path):
        assert load_items(project_dir / "items.toml") == ([], [])

    def test_save_and_load(self, tmp_path: Path, make_item):
        items = [
            make_item(
                "Netflix",
                "10.99",
                MONTHLY,
                category="Entertainment",
                billing_day=3,
                next_billing_date=date(2025, 2, 3),
                shift_if_weekend=True,
                aliases=("NETFLIX.COM",),
            ),
            make_item("Adobe", "120.00", ANNUAL, paused_until=date(2025, 6, 1)),
        ]
        planned = [
            PlannedItem(
                id="car-tax",
                name="Car tax",
                amount=Decimal("190.00"),
                frequency=ANNUAL,
                day_of_month=1,
                start=date(2025, 9, 1),
            )
        ]
        path = tmp_path / "items.toml"
        save_items(path, items, planned)

        loaded_items, loaded_planned = load_items(path)
        assert loaded_items == items
        assert loaded_planned == planned

    def test_amounts_written_as_strings(self, tmp_path: Path, make_item):
        path = tmp_path / "items.toml"
        save_items(path, [make_item("Netflix", "10.99")])
        content = path.read_text()
        assert 'amount = "10.99"' in content
        assert "shift_if_weekend" not in content
        assert "[[planned]]" not in content

    def test_invalid_amount(self, tmp_path: Path):
        path = tmp_path / "items.toml"
        path.write_text('[[items]]\nid = "a"\nname = "X"\namount = "ten"\n')
        with pytest.raises(ValueError, match="items.amount"):
            load_items(path)

    def test_invalid_planned_frequency(self, tmp_path: Path):
        path = tmp_path / "items.toml"
        path.write_text('[[planned]]\nid = "a"\nname = "X"\namount = "5"\nfrequency = "weekly"\n')
        with pytest.raises(ValueError, match="planned.frequency"):
            load_items(path)


# ---------------------------------------------------------------------------
# initialize
# ---------------------------------------------------------------------------


class TestInitialize:
    """Tests for initialize()."""

    def test_creates_files(self, tmp_path: Path):
        target = tmp_path / "new-project"
        initialize(target)
        assert (target / "config.toml").exists()
        assert (target / "items.toml").exists()

    def test_does_not_overwrite(self, project_dir: Path):
        """Existing files are preserved."""
        config_path = project_dir / "config.toml"
        config_path.write_text("# custom\n")
        initialize(project_dir)
        assert config_path.read_text() == "# custom\n"
