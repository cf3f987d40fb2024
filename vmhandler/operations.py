"""The operations an extension handler runs: enable, disable, install and friends.

Each operation takes the running extension and returns the message to report.
The extension object provides ``name``, ``version``, ``logger``, ``handler_env``,
``commands`` (keyed by operation name), ``get_requested_sequence_number``,
``current_sequence_number``, ``manager``, ``requires_seq_no_change``,
``supports_disable``, ``supports_reset_state``, the extension callbacks, a
``report_status(status_type, command, msg)`` method and, optionally, a
``filesystem`` used for the disable marker and the data folder.
"""

from __future__ import annotations

import os
import shutil
from typing import Any

from vmhandler.errors import ExtensionError
from vmhandler.status import StatusType

DISABLED_FILE_NAME = "disable"
DISABLED_FILE_CONTENT = b"1"
DISABLED_FILE_MODE = 0o644
DATA_FOLDER_MODE = 0o755


def _remove_all(path: str) -> None:
    """Remove a file or directory tree; a missing path is not an error."""
    if os.path.isdir(path) and not os.path.islink(path):
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class _LocalFileSystem:
    """File operations performed on the local disk."""

    @staticmethod
    def stat(path: str) -> os.stat_result:
        return os.stat(path)

    @staticmethod
    def make_dirs(path: str, mode: int) -> None:
        os.makedirs(path, mode, exist_ok=True)

    @staticmethod
    def remove_tree(path: str) -> None:
        _remove_all(path)

    @staticmethod
    def write_file(path: str, data: bytes, mode: int) -> None:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)

    @staticmethod
    def remove(path: str) -> None:
        os.remove(path)


_LOCAL_FILESYSTEM = _LocalFileSystem()


def _filesystem(ext: Any) -> Any:
    return getattr(ext, "filesystem", None) or _LOCAL_FILESYSTEM


def _exists(ext: Any, path: str) -> bool:
    """Return whether ``path`` exists; errors other than absence propagate."""
    try:
        _filesystem(ext).stat(path)
    except FileNotFoundError:
        return False
    return True


def _report(ext: Any, status_type: StatusType, command: Any, msg: str) -> None:
    """Report status, logging rather than propagating any failure."""
    try:
        ext.report_status(status_type, command, msg)
    except Exception as exc:  # reporting must never stop the operation
        ext.logger.error("failed to report status: %s", exc)


def _disabled_file(ext: Any) -> str:
    return os.path.join(ext.handler_env.config_folder, DISABLED_FILE_NAME)


def _run_callback(ext: Any, callback: Any, label: str) -> None:
    """Run an optional callback whose failure is logged but not propagated."""
    if callback is None:
        return
    try:
        callback(ext)
    except Exception as exc:
        ext.logger.error("%s failed: %s", label, exc)


def enable(ext: Any) -> str:
    """Run the enable operation and return the callback's message."""
    command = ext.commands.get("enable")
    if command is None:
        msg = "extension does not have an enable command"
        ext.logger.error(msg)
        raise ExtensionError(msg)

    try:
        requested = ext.get_requested_sequence_number()
    except Exception as exc:
        msg = "could not determine requested sequence number"
        ext.logger.error("%s: %s", msg, exc)
        _report(ext, StatusType.ERROR, command, str(exc) + msg)
        raise

    current = ext.current_sequence_number
    if ext.requires_seq_no_change and current is not None and requested <= current:
        ext.logger.info("sequence number has not increased. Exiting.")
        raise SystemExit(0)

    ext.logger.info("Running operation enable for seqNo %s", requested)
    _report(ext, StatusType.TRANSITIONING, command, "")

    try:
        ext.manager.set_sequence_number(ext.name, ext.version, requested)
    except Exception as exc:
        # Execution continues by design.
        ext.logger.warning("failed to write new sequence number: %s", exc)

    if ext.supports_disable and is_disabled(ext):
        ext.logger.info("re-enabling the extension")
        try:
            set_disabled(ext, False)
        except Exception as exc:
            # Let the extension do its work even if the marker cannot be removed.
            ext.logger.error("Could not re-enable the extension: %s", exc)

    try:
        msg = ext.enable_callback(ext)
    except Exception as exc:
        ext.logger.error("Enable failed: %s", exc)
        _report(ext, StatusType.ERROR, command, str(exc))
        raise

    msg = msg or ""
    ext.logger.info("Enable succeeded")
    _report(ext, StatusType.SUCCESS, command, msg)
    return msg


def disable(ext: Any) -> str:
    """Mark the extension disabled (when supported) and run its disable callback."""
    command = ext.commands.get("disable")
    if command is None:
        msg = "disable command not found"
        ext.logger.error(msg)
        raise ExtensionError(msg)
    ext.logger.info("disable called")

    if ext.supports_disable:
        ext.logger.info("Disabling extension")
        if is_disabled(ext):
            ext.logger.info("Extension is already disabled")
        else:
            try:
                set_disabled(ext, True)
            except Exception as exc:
                _report(ext, StatusType.ERROR, command, "disable failed " + str(exc))
                raise
    else:
        ext.logger.info("VMExtension supportsDisable is set to false. No action to be taken")

    if ext.disable_callback is not None:
        try:
            ext.disable_callback(ext)
        except Exception as exc:
            ext.logger.error("Disable failed: %s", exc)
            _report(ext, StatusType.ERROR, command, "disable failed " + str(exc))
            raise

    _report(ext, StatusType.SUCCESS, command, "")
    return ""


def is_disabled(ext: Any) -> bool:
    """Return whether the disable marker file exists in the config folder."""
    if not ext.supports_disable:
        ext.logger.info("supportsDisable was false, skipping check for disableFile")
        return False
    try:
        return _exists(ext, _disabled_file(ext))
    except OSError as exc:
        ext.logger.error("doesFileExist error detected: %s", exc)
        return True


def set_disabled(ext: Any, disabled: bool) -> None:
    """Create or remove the disable marker file."""
    path = _disabled_file(ext)
    try:
        exists = _exists(ext, path)
    except OSError as exc:
        ext.logger.error("doesFileExist error detected: %s", exc)
        exists = True

    if exists == disabled:
        return

    fs = _filesystem(ext)
    if disabled:
        ext.logger.info("Disabling extension")
        try:
            fs.write_file(path, DISABLED_FILE_CONTENT, DISABLED_FILE_MODE)
        except Exception as exc:
            ext.logger.error("Could not disable the extension: %s", exc)
            raise
        ext.logger.info("Disabled extension")
        return

    ext.logger.info("Un-disabling extension")
    try:
        fs.remove(path)
    except FileNotFoundError:
        # The file can vanish between the check and the removal.
        ext.logger.warning("Disable file was not present ignoring error")
        return
    except Exception as exc:
        ext.logger.error("Could not re-enable the extension: %s", exc)
        raise
    ext.logger.info("Re-enabled extension")


def reset_state(ext: Any) -> str:
    """Remove the data folder and run the reset-state callback; failures are logged."""
    ext.logger.info("resetState called")
    folder = ext.handler_env.data_folder
    if folder:
        try:
            _remove_all(folder)
        except OSError as exc:
            ext.logger.error("Removing data directory contents failed: %s", exc)
    _run_callback(ext, ext.reset_state_callback, "ResetState")
    return ""


def update(ext: Any) -> str:
    """Run the update callback; its failure is logged but not propagated."""
    ext.logger.info("update called")
    _run_callback(ext, ext.update_callback, "Update")
    return ""


def install(ext: Any) -> str:
    """Create the data folder if needed and run the install callback."""
    folder = ext.handler_env.data_folder
    if not _exists(ext, folder):
        ext.logger.info("Creating data dir %s", folder)
        try:
            _filesystem(ext).make_dirs(folder, DATA_FOLDER_MODE)
        except Exception as exc:
            raise ExtensionError(f"failed to create data dir: {exc}") from exc
        ext.logger.info("Created data dir %s", folder)

    _run_callback(ext, ext.install_callback, "Install")
    ext.logger.info("installed")
    return ""


def uninstall(ext: Any) -> str:
    """Remove the data folder if present and run the uninstall callback."""
    folder = ext.handler_env.data_folder
    if _exists(ext, folder):
        ext.logger.info("Removing data dir %s", folder)
        try:
            _filesystem(ext).remove_tree(folder)
        except Exception as exc:
            raise ExtensionError(f"failed to delete data dir: {exc}") from exc
        ext.logger.info("removed data dir")

    _run_callback(ext, ext.uninstall_callback, "Uninstall")
    ext.logger.info("uninstalled")
    return ""


def noop(ext: Any) -> str:
    """Do nothing; used for operations the extension does not support."""
    ext.logger.info("noop")
    return ""