"""The extension object that dispatches the agent's commands to operations."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from vmhandler import operations, seqno
from vmhandler.environment import EnvironmentManager, HandlerEnvironment, ProductionEnvironmentManager
from vmhandler.errors import (
    ArgCannotBeNullError,
    ArgCannotBeNullOrEmptyError,
    ExtensionError,
    InvalidOperationNameError,
    NoMrseqFileError,
    NoSettingsFilesError,
)
from vmhandler.initialization import Callback, EnableCallback, InitializationInfo
from vmhandler.settings import HandlerSettings
from vmhandler.status import StatusMessageFormatter, StatusType, new_status, status_msg

FIXED_FAIL_EXIT_CODE = 3
USAGE_EXIT_CODE = 2


class OperationName(str, Enum):
    """Operations the guest agent can ask the extension to run."""

    INSTALL = "install"
    UNINSTALL = "uninstall"
    ENABLE = "enable"
    UPDATE = "update"
    DISABLE = "disable"
    RESET_STATE = "resetstate"

    def __str__(self) -> str:
        return self.value

    def to_status_name(self) -> str:
        """Return the name used in status reports, e.g. ``Enable``."""
        return self.value.title()

    @classmethod
    def from_string(cls, operation: str) -> OperationName:
        """Return the operation with the given name, or raise if there is none."""
        try:
            return cls(operation)
        except ValueError:
            raise InvalidOperationNameError() from None


@dataclass(frozen=True)
class Command:
    """How one operation runs."""

    func: Callable[[Any], str]
    operation: OperationName
    should_report_status: bool
    fail_exit_code: int


def _no_sequence_number() -> int:
    raise ExtensionError("no requested sequence number source is configured")


def _no_settings() -> HandlerSettings:
    return HandlerSettings()


@dataclass
class VMExtension:
    """Standard extension operations, independent of the operating system."""

    name: str
    version: str
    handler_env: HandlerEnvironment
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("vmhandler"))
    get_requested_sequence_number: Callable[[], int] = _no_sequence_number
    get_settings: Callable[[], HandlerSettings] = _no_settings
    current_sequence_number: Optional[int] = None
    manager: Any = None
    commands: dict[OperationName, Command] = field(default_factory=dict)
    requires_seq_no_change: bool = False
    supports_disable: bool = True
    supports_reset_state: bool = True
    enable_callback: Optional[EnableCallback] = None
    disable_callback: Optional[Callback] = None
    update_callback: Optional[Callback] = None
    reset_state_callback: Optional[Callback] = None
    install_callback: Optional[Callback] = None
    uninstall_callback: Optional[Callback] = None
    status_formatter: StatusMessageFormatter = status_msg
    filesystem: Any = None

    def report_status(self, status_type: StatusType | str, command: Command, msg: str) -> None:
        """Save the operation's status to ``<seq_no>.status`` when the command reports status."""
        if not command.should_report_status:
            self.logger.info("status not reported for operation (by design)")
            return

        requested = self.get_requested_sequence_number()
        status_name = command.operation.to_status_name()
        report = new_status(status_type, status_name, self.status_formatter(status_name, status_type, msg))
        try:
            report.save(self.handler_env.status_folder, requested)
        except OSError as exc:
            self.logger.error("Failed to save handler status: %s", exc)
            raise ExtensionError(f"failed to save handler status: {exc}") from exc

    def usage(self, program: str) -> str:
        """Return the usage text: the program, its commands and the version."""
        commands = "|".join(str(operation) for operation in self.commands)
        return f"Usage: {program} {commands}\n{self.version}"

    def parse_command(self, args: list[str]) -> Command:
        """Pick the command named by ``args[1]``; print usage and exit with 2 if invalid."""
        program = args[0] if args else sys.argv[0]
        if len(args) != 2:
            print(self.usage(program))
            print("Incorrect usage.")
            raise SystemExit(USAGE_EXIT_CODE)

        op = args[1]
        try:
            command = self.commands[OperationName.from_string(op)]
        except (InvalidOperationNameError, KeyError):
            print(self.usage(program))
            print(f"Incorrect command: {json.dumps(op)}")
            raise SystemExit(USAGE_EXIT_CODE) from None
        return command

    def run(self, argv: list[str] | None = None) -> str:
        """Run the command named on the command line; exit with its failure code if it fails."""
        args = list(sys.argv if argv is None else argv)
        command = self.parse_command(args)
        try:
            return command.func(self)
        except SystemExit:
            raise
        except Exception as exc:
            self.logger.error("failed to handle: %s", exc)
            raise SystemExit(command.fail_exit_code) from exc


def get_vm_extension(
    init_info: InitializationInfo | None,
    manager: EnvironmentManager | None = None,
) -> VMExtension:
    """Build the extension described by ``init_info`` using ``manager`` for the environment."""
    if init_info is None:
        raise ArgCannotBeNullError()
    if not init_info.name or not init_info.version:
        raise ArgCannotBeNullOrEmptyError()
    if init_info.enable_callback is None:
        raise ArgCannotBeNullError()

    if manager is None:
        manager = ProductionEnvironmentManager()

    handler_env = manager.get_handler_environment(init_info.name, init_info.version)
    logger = logging.getLogger(f"vmhandler.{init_info.name}")

    def requested_sequence_number() -> int:
        return manager.find_seq_num(logger, handler_env.config_folder)

    retriever = seqno.MrseqFileRetriever(getattr(manager, "mrseq_path", seqno.MOST_RECENT_SEQUENCE_FILE_NAME))
    current: Optional[int]
    try:
        current = manager.get_current_sequence_number(logger, retriever, init_info.name, init_info.version)
    except (NoSettingsFilesError, NoMrseqFileError):
        current = None
    except Exception as exc:
        raise ExtensionError(f"failed to read the current sequence number due to '{exc}'") from exc

    update_func = operations.update if init_info.update_callback is not None else operations.noop
    disable_func = (
        operations.disable
        if init_info.supports_disable or init_info.disable_callback is not None
        else operations.noop
    )
    reset_func = (
        operations.reset_state
        if init_info.supports_reset_state or init_info.reset_state_callback is not None
        else operations.noop
    )

    commands = {
        OperationName.INSTALL: Command(
            operations.install, OperationName.INSTALL, False, init_info.install_exit_code
        ),
        OperationName.UNINSTALL: Command(
            operations.uninstall, OperationName.UNINSTALL, False, init_info.other_exit_code
        ),
        OperationName.ENABLE: Command(operations.enable, OperationName.ENABLE, True, init_info.other_exit_code),
        OperationName.UPDATE: Command(update_func, OperationName.UPDATE, False, FIXED_FAIL_EXIT_CODE),
        OperationName.DISABLE: Command(disable_func, OperationName.DISABLE, True, FIXED_FAIL_EXIT_CODE),
        OperationName.RESET_STATE: Command(reset_func, OperationName.RESET_STATE, False, FIXED_FAIL_EXIT_CODE),
    }

    def handler_settings() -> HandlerSettings:
        return manager.get_handler_settings(logger, handler_env)

    return VMExtension(
        name=init_info.name,
        version=init_info.version,
        handler_env=handler_env,
        logger=logger,
        get_requested_sequence_number=requested_sequence_number,
        get_settings=handler_settings,
        current_sequence_number=current,
        manager=manager,
        commands=commands,
        requires_seq_no_change=init_info.requires_seq_no_change,
        supports_disable=init_info.supports_disable,
        supports_reset_state=init_info.supports_reset_state,
        enable_callback=init_info.enable_callback,
        disable_callback=init_info.disable_callback,
        update_callback=init_info.update_callback,
        reset_state_callback=init_info.reset_state_callback,
        install_callback=init_info.install_callback,
        uninstall_callback=init_info.uninstall_callback,
        status_formatter=init_info.custom_status_formatter or status_msg,
    )