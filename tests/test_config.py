import pytest
import yaml

from money_manager.config import DEFAULTS, load_config


def test_defaults_without_file(monkeypatch):
    for name in ("MONEY_MANAGER_DB", "MONEY_MANAGER_USER", "MONEY_MANAGER_INBOX"):
        monkeypatch.delenv(name, raising=False)
    cfg = load_config()
    assert cfg == DEFAULTS
    assert cfg is not DEFAULTS
    cfg["sms"]["limit"] = 1
    assert DEFAULTS["sms"]["limit"] == 100


def test_file_merges_sms_and_replaces_sections(tmp_path, monkeypatch):
    monkeypatch.delenv("MONEY_MANAGER_DB", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "db_path": "custom.db",
        "sms": {"days_back": 7},
        "categories": {"Food": ["swiggy"]},
    }))
    cfg = load_config(str(path))
    assert cfg["db_path"] == "custom.db"
    assert cfg["sms"] == {"limit": 100, "days_back": 7, "filter": "transaction"}
    assert cfg["categories"] == {"Food": ["swiggy"]}


def test_environment_wins(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"user_id": "file-user"}))
    monkeypatch.setenv("MONEY_MANAGER_USER", "env-user")
    assert load_config(str(path))["user_id"] == "env-user"


def test_non_mapping_config_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_config(str(path))
