import pytest

from vmhandler.errors import ArgCannotBeNullError, ArgCannotBeNullOrEmptyError
from vmhandler.initialization import get_initialization_info


def enable_callback(ext):
    return "blah"


def test_empty_name_rejected():
    with pytest.raises(ArgCannotBeNullOrEmptyError):
        get_initialization_info("", "5.0", True, enable_callback)


def test_empty_version_rejected():
    with pytest.raises(ArgCannotBeNullOrEmptyError):
        get_initialization_info("yaba", "", True, enable_callback)


def test_missing_enable_callback_rejected():
    with pytest.raises(ArgCannotBeNullError):
        get_initialization_info("yaba", "5.0", True, None)


def test_defaults():
    ii = get_initialization_info("yaba", "5.0", True, enable_callback)
    assert ii.name == "yaba"
    assert ii.version == "5.0"
    assert ii.supports_disable is True
    assert ii.supports_reset_state is True
    assert ii.requires_seq_no_change is True
    assert ii.install_exit_code == 52
    assert ii.other_exit_code == 3
    assert ii.log_file_name_pattern == ""


def test_optional_callbacks_unset_by_default():
    ii = get_initialization_info("yaba", "5.0", False, enable_callback)
    assert ii.enable_callback is enable_callback
    assert ii.requires_seq_no_change is False
    assert [
        ii.disable_callback,
        ii.update_callback,
        ii.reset_state_callback,
        ii.install_callback,
        ii.uninstall_callback,
        ii.custom_status_formatter,
    ] == [None] * 6