"""
tests/test_config.py — YAML Config & Engine Bootstrap
=======================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from rewear.config import RewearConfig, load_config
from rewear.database.engine import create_db_engine, get_session, init_db
from rewear.database.models import Setting
from rewear.database.seed import DEFAULT_SETTINGS, seed_default_settings


class TestLoadConfig:

    def test_reads_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "marketplace_name: ReWear\n"
            "api_port: 8080\n"
            "swap_requests_per_minute: 4\n",
            encoding="utf-8",
        )

        cfg = load_config(path)

        assert cfg == RewearConfig(
            marketplace_name="ReWear",
            api_port=8080,
            swap_requests_per_minute=4,
            admin_mutations_per_minute=30,
        )

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "absent.yaml")

    def test_missing_required_key(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("api_port: 8000\n", encoding="utf-8")
        with pytest.raises(KeyError):
            load_config(path)

    def test_config_is_frozen(self):
        cfg = RewearConfig(marketplace_name="ReWear", api_port=8000)
        with pytest.raises(AttributeError):
            cfg.api_port = 1


class TestEngineBootstrap:

    def test_requires_database_url(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(RuntimeError, match="DATABASE_URL is not set"):
            create_db_engine()

    def test_init_db_seeds_idempotently(self, tmp_path):
        engine = create_db_engine(f"sqlite:///{tmp_path / 'boot.db'}")
        init_db(engine)
        init_db(engine)

        with Session(engine) as session:
            keys = set(session.scalars(select(Setting.key)))
        assert keys == set(DEFAULT_SETTINGS)
        assert seed_default_settings(engine) == 0
        engine.dispose()

    def test_get_session_rolls_back_on_error(self, db_engine):
        with pytest.raises(ValueError):
            with get_session(db_engine) as session:
                session.get(Setting, "items.listing_bonus").value_json = "99"
                raise ValueError("abort")

        with Session(db_engine) as session:
            assert session.get(Setting, "items.listing_bonus").value_json == "10"
