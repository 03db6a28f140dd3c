import pytest

from jailreplica.errors_catalog import actionable_error


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("target_exists", jail="replica1")

    assert "Jail 'replica1' already exists." in message
    assert "Suggested action:" in message
    assert "--force" in message


def test_actionable_error_unknown_key():
    with pytest.raises(KeyError):
        actionable_error("no_such_error")
