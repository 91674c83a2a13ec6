from __future__ import annotations

import tomllib

import pytest

from study_buddy import config as config_mod


def test_defaults_without_file(data_home):
    cfg = config_mod.load_config()
    assert cfg.source is None
    assert cfg.openai.chat_model == "gpt-4o-mini"
    assert cfg.openai.guide_model == "gpt-4o-mini-search-preview"
    assert cfg.history.filename == "history.json"
    assert cfg.history.preview_limit == 5
    assert cfg.ui.dark is True
    assert cfg.logging.level == "INFO"


def test_resolve_path_prefers_explicit_then_env(tmp_path, data_home, monkeypatch):
    default = config_mod.resolve_config_path()
    assert default == data_home.resolve() / "config" / "buddy.toml"

    env_path = tmp_path / "env.toml"
    monkeypatch.setenv(config_mod.CONFIG_PATH_ENV, str(env_path))
    assert config_mod.resolve_config_path() == env_path.resolve()

    explicit = tmp_path / "explicit.toml"
    assert (
        config_mod.resolve_config_path(explicit_path=explicit)
        == explicit.resolve()
    )


def test_overrides_merge_over_defaults(tmp_path):
    path = tmp_path / "buddy.toml"
    path.write_text(
        "[openai]\n"
        'chat_model = "gpt-4.1-mini"\n'
        "temperature = 1\n"
        "[ui]\n"
        "dark = false\n"
        "[logging]\n"
        'level = "debug"\n',
        encoding="utf-8",
    )
    cfg = config_mod.load_config(explicit_path=path)
    assert cfg.source == path.resolve()
    assert cfg.openai.chat_model == "gpt-4.1-mini"
    assert cfg.openai.temperature == 1.0
    assert cfg.openai.max_output_tokens == 1200
    assert cfg.ui.dark is False
    assert cfg.logging.level == "DEBUG"


def test_explicit_missing_file_raises(tmp_path):
    with pytest.raises(config_mod.ConfigError, match="not found"):
        config_mod.load_config(explicit_path=tmp_path / "missing.toml")


@pytest.mark.parametrize(
    "body, message",
    [
        ("[openai]\nunknown = 1\n", "Unknown configuration key 'openai.unknown'"),
        ("[extra]\nvalue = 1\n", "Unknown configuration key 'extra'"),
        ("openai = 3\n", "Expected table for 'openai'"),
        ("[openai]\ntemperature = 5.0\n", "openai.temperature"),
        ("[openai]\nmax_output_tokens = 0\n", "openai.max_output_tokens"),
        ('[openai]\nchat_model = "  "\n', "openai.chat_model"),
        ("[history]\npreview_limit = true\n", "history.preview_limit"),
        ('[history]\nfilename = "../escape.json"\n', "bare file name"),
        ('[ui]\ndark = "yes"\n', "ui.dark"),
        ('[logging]\nlevel = "LOUD"\n', "logging.level"),
        ("[openai\n", "Failed to parse"),
    ],
)
def test_invalid_config_rejected(tmp_path, body, message):
    path = tmp_path / "buddy.toml"
    path.write_text(body, encoding="utf-8")
    with pytest.raises(config_mod.ConfigError, match=message):
        config_mod.load_config(explicit_path=path)


def test_template_parses_to_defaults(tmp_path):
    parsed = tomllib.loads(config_mod.config_template())
    assert parsed["openai"]["chat_model"] == "gpt-4o-mini"

    path = config_mod.write_template(tmp_path / "cfg" / "buddy.toml")
    assert config_mod.load_config(explicit_path=path) == (
        config_mod.BuddyConfig(
            openai=config_mod.default_config().openai,
            history=config_mod.default_config().history,
            ui=config_mod.default_config().ui,
            logging=config_mod.default_config().logging,
            source=path.resolve(),
        )
    )


def test_write_template_refuses_overwrite(tmp_path):
    path = config_mod.write_template(tmp_path / "buddy.toml")
    with pytest.raises(config_mod.ConfigError, match="already exists"):
        config_mod.write_template(path)
    path.write_text("# custom\n", encoding="utf-8")
    config_mod.write_template(path, overwrite=True)
    assert "[openai]" in path.read_text(encoding="utf-8")


def test_default_tree_is_a_copy():
    tree = config_mod.default_tree()
    tree["openai"]["chat_model"] = "changed"
    assert config_mod.default_tree()["openai"]["chat_model"] == "gpt-4o-mini"
