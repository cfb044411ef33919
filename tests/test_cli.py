"""Tests for the CLI commands that need no network access."""

import asyncio
import json

import pytest

from optipanier.cli import main
from optipanier.db import RecordStore
from optipanier.models import ArchivedReceipt, ReceiptItem


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        "[storage]\n"
        f'db_path = "{(tmp_path / "data.db").as_posix()}"\n'
        f'settings_path = "{(tmp_path / "settings.json").as_posix()}"\n',
        encoding="utf-8",
    )
    return path


def _run(config_file, *args):
    main(["--config", str(config_file), *args])


class TestCards:
    def test_add_and_list(self, config_file, capsys):
        _run(config_file, "cards", "add", "--store", " Carrefour ", "--number", "1234")
        _run(config_file, "cards", "list")
        out = capsys.readouterr().out
        assert "Carte enregistrée" in out
        assert "Carrefour" in out and "1234" in out

    def test_blank_number_rejected(self, config_file, capsys):
        with pytest.raises(SystemExit) as exc:
            _run(config_file, "cards", "add", "--store", "Lidl", "--number", "  ")
        assert exc.value.code == 1
        assert "requis" in capsys.readouterr().err

    def test_empty_list(self, config_file, capsys):
        _run(config_file, "cards", "list")
        assert "Aucune carte" in capsys.readouterr().out


class TestBudget:
    def test_empty_archive(self, config_file, capsys):
        _run(config_file, "budget")
        assert "Aucune donnée" in capsys.readouterr().out

    async def _seed(self, db_path):
        store = RecordStore(db_path)
        await store.initialize()
        try:
            await store.add(
                "receipts",
                ArchivedReceipt(
                    store="Lidl", date="2025-01-10", total=3.5, id="1",
                    items=[ReceiptItem("lait", 1.0), ReceiptItem("pain", 2.5)],
                ).to_record(),
            )
        finally:
            store.close()

    def test_summary(self, config_file, tmp_path, capsys):
        asyncio.run(self._seed(tmp_path / "data.db"))
        _run(config_file, "budget")
        out = capsys.readouterr().out
        assert "3.50 €" in out
        assert "Lait" in out


class TestAlerts:
    def test_add_and_list(self, config_file, tmp_path, capsys):
        _run(config_file, "alerts", "add", "café")
        _run(config_file, "alerts", "list")
        out = capsys.readouterr().out
        assert "Produit suivi : café" in out
        stored = json.loads((tmp_path / "settings.json").read_text(encoding="utf-8"))
        assert stored["optiPanierAlertItems"][0]["name"] == "café"


class TestUsage:
    def test_no_command(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 1

    def test_missing_image(self, config_file, capsys):
        with pytest.raises(SystemExit):
            _run(config_file, "scan", "/nonexistent/ticket.jpg")
        assert "introuvable" in capsys.readouterr().err
