from __future__ import annotations

import json

import pytest

from pricing_atlas import cli
from pricing_atlas.catalog.errors import FetchError
from pricing_atlas.catalog.store import JsonCatalogStore
from pricing_atlas.catalog.vendors import list_adapter_keys
from fakes import StubAdapter, rows


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch) -> None:
    for name in ("PRICING_STORE_URL", "PRICING_STAGING_DIR", "PRICING_MAX_WORKERS"):
        monkeypatch.delenv(name, raising=False)


def _use_adapters(monkeypatch, adapters) -> None:
    monkeypatch.setattr(
        "pricing_atlas.catalog.sync.build_default_adapters", lambda: list(adapters)
    )


def test_list_prints_adapter_keys(capsys) -> None:
    assert cli.main(["list"]) == cli.EXIT_OK
    assert capsys.readouterr().out.split() == list_adapter_keys()


def test_update_merges_into_store_and_prints_summary(monkeypatch, tmp_path, capsys) -> None:
    _use_adapters(
        monkeypatch,
        [
            StubAdapter("alpha", {"east": rows(("a-1", "0.1"))}),
            StubAdapter("beta", {"west": rows(("b-1", "2"), ("b-2", "3"))}),
        ],
    )
    path = tmp_path / "store.json"

    code = cli.main(["update", "--store", f"json://{path}", "--only", "beta:prices"])

    assert code == cli.EXIT_OK
    summary = json.loads(capsys.readouterr().out)
    assert summary["adapters_selected"] == ["beta:prices"]
    assert summary["product_count"] == 2
    assert summary["adapters"][0]["status"] == "ok"
    assert JsonCatalogStore(path).count_prices() == 2


def test_update_exit_code_on_adapter_failure(monkeypatch, capsys) -> None:
    _use_adapters(
        monkeypatch,
        [
            StubAdapter("alpha", {"east": rows(("a-1", "0.1"))}),
            StubAdapter("beta", FetchError("offline")),
        ],
    )

    assert cli.main(["update", "--store", "memory://"]) == cli.EXIT_OK
    summary = json.loads(capsys.readouterr().out)
    assert (summary["adapters_ok"], summary["adapters_failed"]) == (1, 1)

    code = cli.main(["update", "--store", "memory://", "--fail-on-error"])
    assert code == cli.EXIT_ADAPTER_FAILED


def test_update_exit_code_when_nothing_merged(monkeypatch, capsys) -> None:
    _use_adapters(monkeypatch, [StubAdapter("alpha", {})])

    assert cli.main(["update", "--store", "memory://", "--fail-on-empty"]) == cli.EXIT_EMPTY
    assert "zero products" in capsys.readouterr().err
    argv = ["update", "--store", "memory://", "--only", "nope:x", "--fail-on-empty"]
    assert cli.main(argv) == cli.EXIT_EMPTY


def test_update_rejects_unreadable_store(tmp_path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{", encoding="utf-8")
    with pytest.raises(SystemExit, match="could not open store"):
        cli.main(["update", "--store", f"json://{path}"])


def test_settings_overrides_from_flags(monkeypatch) -> None:
    monkeypatch.setenv("PRICING_MAX_WORKERS", "3")
    parser = cli.build_parser()

    settings = cli._settings_from_args(parser.parse_args(["update"]))
    assert settings.max_workers == 3

    args = parser.parse_args(
        ["update", "--store", "memory://", "--staging-dir", "raw", "--max-workers", "4", "-vv"]
    )
    settings = cli._settings_from_args(args)
    assert settings.store_url == "memory://"
    assert (settings.staging_dir, settings.max_workers) == ("raw", 4)
    assert args.verbose == 2


def test_invalid_max_workers_is_rejected() -> None:
    args = cli.build_parser().parse_args(["update", "--max-workers", "0"])
    with pytest.raises(SystemExit, match="invalid settings"):
        cli._settings_from_args(args)


def test_malformed_numeric_env_exits_with_message(monkeypatch) -> None:
    monkeypatch.setenv("PRICING_MAX_WORKERS", "abc")
    with pytest.raises(SystemExit, match="max_workers"):
        cli.main(["update", "--store", "memory://"])
