import os

from list_sync import load_env


def test_load_env_from_explicit_file(tmp_path, monkeypatch):
    monkeypatch.setenv("NOTION_SPACE_ID", "placeholder")
    monkeypatch.delenv("NOTION_SPACE_ID")
    env = tmp_path / "custom.env"
    env.write_text("NOTION_SPACE_ID=space-from-file\n", encoding="utf-8")

    assert load_env(str(env)) == str(env.resolve())
    assert os.environ["NOTION_SPACE_ID"] == "space-from-file"


def test_load_env_keeps_existing_values(tmp_path, monkeypatch):
    monkeypatch.setenv("NOTION_SPACE_ID", "from-shell")
    env = tmp_path / "custom.env"
    env.write_text("NOTION_SPACE_ID=space-from-file\n", encoding="utf-8")

    load_env(str(env))
    assert os.environ["NOTION_SPACE_ID"] == "from-shell"


def test_load_env_missing_file_returns_none(tmp_path):
    assert load_env(str(tmp_path / "nope.env")) is None
