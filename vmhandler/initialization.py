"""Description of how an extension wants the handler framework to run it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from vmhandler.errors import ArgCannotBeNullError, ArgCannotBeNullOrEmptyError
from vmhandler.status import StatusMessageFormatter

if TYPE_CHECKING:
    from vmhandler.extension import VMExtension

EnableCallback = Callable[["VMExtension"], str]
"""Runs the enable operation and returns the message to report; raises on failure."""

Callback = Callable[["VMExtension"], None]
"""Runs a non-enable operation; raises on failure."""

DEFAULT_INSTALL_EXIT_CODE = 52
DEFAULT_OTHER_EXIT_CODE = 3


@dataclass
class InitializationInfo:
    """Options an extension passes to the framework."""

    name: str = ""
    version: str = ""
    enable_callback: Optional[EnableCallback] = None
    requires_seq_no_change: bool = False
    supports_disable: bool = True
    supports_reset_state: bool = True
    install_exit_code: int = DEFAULT_INSTALL_EXIT_CODE
    other_exit_code: int = DEFAULT_OTHER_EXIT_CODE
    disable_callback: Optional[Callback] = None
    update_callback: Optional[Callback] = None
    reset_state_callback: Optional[Callback] = None
    install_callback: Optional[Callback] = None
    uninstall_callback: Optional[Callback] = None
    custom_status_formatter: Optional[StatusMessageFormatter] = None
    log_file_name_pattern: str = ""


def get_initialization_info(
    name: str,
    version: str,
    requires_seq_no_change: bool,
    enable_callback: EnableCallback | None,
) -> InitializationInfo:
    """Return initialization info with the framework's defaults."""
    if not name or not version:
        raise ArgCannotBeNullOrEmptyError()
    if enable_callback is None:
        raise ArgCannotBeNullError()
    return InitializationInfo(
        name=name,
        version=version,
        enable_callback=enable_callback,
        requires_seq_no_change=requires_seq_no_change,
    )