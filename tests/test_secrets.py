import logging

import pytest

from actkit.secrets import new_secrets


def _no_prompt(name):
    raise AssertionError(f"unexpected prompt for {name}")


def test_explicit_value_and_upper_case_name():
    assert new_secrets(["api_token=token"], prompt=_no_prompt) == {"API_TOKEN": "token"}


def test_value_may_contain_equals():
    result = new_secrets(["pair=secret=placeholder"], prompt=_no_prompt)
    assert result == {"PAIR": "secret=placeholder"}


def test_empty_explicit_value_is_kept():
    assert new_secrets(["blank="], prompt=_no_prompt) == {"BLANK": ""}


def test_bare_name_reads_environment(monkeypatch):
    monkeypatch.setenv("MY_SECRET", "secret")
    assert new_secrets(["my_secret"], prompt=_no_prompt) == {"MY_SECRET": "secret"}


def test_bare_name_prompts_when_env_missing(monkeypatch):
    monkeypatch.delenv("ACTKIT_UNSET_NAME", raising=False)
    asked = []

    def prompt(name):
        asked.append(name)
        return "placeholder"

    assert new_secrets(["actkit_unset_name"], prompt=prompt) == {"ACTKIT_UNSET_NAME": "placeholder"}
    assert asked == ["ACTKIT_UNSET_NAME"]


def test_empty_env_value_prompts(monkeypatch):
    monkeypatch.setenv("EMPTY_VALUE", "")
    assert new_secrets(["EMPTY_VALUE"], prompt=lambda name: "token") == {"EMPTY_VALUE": "token"}


def test_duplicate_is_logged_and_last_wins(caplog):
    with caplog.at_level(logging.ERROR):
        result = new_secrets(["dup=token", "DUP=secret"], prompt=_no_prompt)
    assert result == {"DUP": "secret"}
    assert "already defined" in caplog.text


def test_prompt_failure_propagates(monkeypatch):
    monkeypatch.delenv("ACTKIT_UNSET_NAME", raising=False)

    def failing(name):
        raise EOFError("no input")

    with pytest.raises(EOFError):
        new_secrets(["actkit_unset_name"], prompt=failing)