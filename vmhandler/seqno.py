"""Sequence number discovery and persistence."""

from __future__ import annotations

import fnmatch
import logging
import os
import re
from typing import Protocol

from vmhandler.errors import (
    InvalidSettingsFileNameError,
    NoMrseqFileError,
    NoSettingsFilesError,
    SequenceNumberNotFoundError,
)

CONFIG_SEQUENCE_NUMBER_ENV = "ConfigSequenceNumber"
MOST_RECENT_SEQUENCE_FILE_NAME = "mrseq"
SETTINGS_SUFFIX = ".settings"

_UNSIGNED = re.compile(r"[0-9]+", re.ASCII)
_SIGNED = re.compile(r"[+-]?[0-9]+", re.ASCII)
_UINT64_LIMIT = 2**64


class SequenceNumberRetriever(Protocol):
    def get_sequence_number(self, name: str, version: str) -> int: ...


def _parse_int(text: str) -> int:
    if not _SIGNED.fullmatch(text):
        raise ValueError(f"invalid integer: {text!r}")
    return int(text)


def read_sequence_number_file(path: str | os.PathLike[str] = MOST_RECENT_SEQUENCE_FILE_NAME) -> int:
    """Read the most recently used sequence number from the mrseq file."""
    try:
        with open(path, encoding="utf-8") as handle:
            content = handle.read()
    except FileNotFoundError as exc:
        raise NoMrseqFileError() from exc
    except OSError as exc:
        raise OSError(f"failed to read mrseq file : {exc}") from exc
    return _parse_int(content)


def write_sequence_number_file(
    seq_no: int, path: str | os.PathLike[str] = MOST_RECENT_SEQUENCE_FILE_NAME
) -> None:
    """Write the sequence number to the mrseq file, readable by the owner only."""
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(str(seq_no))
    except OSError as exc:
        raise OSError(f"could not write sequence number file {os.fspath(path)}, error: {exc}") from exc


def set_sequence_number(
    name: str,
    version: str,
    seq_no: int,
    path: str | os.PathLike[str] = MOST_RECENT_SEQUENCE_FILE_NAME,
) -> None:
    """Persist the sequence number the extension is now running."""
    write_sequence_number_file(seq_no, path)


class MrseqFileRetriever:
    """Reads the current sequence number from the mrseq file."""

    def __init__(self, path: str | os.PathLike[str] = MOST_RECENT_SEQUENCE_FILE_NAME) -> None:
        self.path = path

    def get_sequence_number(self, name: str, version: str) -> int:
        return read_sequence_number_file(self.path)


def get_current_sequence_number(
    logger: logging.Logger, retriever: SequenceNumberRetriever, name: str, version: str
) -> int:
    """Return the current sequence number, or 0 when none has been recorded."""
    try:
        return retriever.get_sequence_number(name, version)
    except SequenceNumberNotFoundError:
        # The extension may not be installed yet.
        logger.error("couldn't find sequence number")
        return 0


def _seq_from_file_name(logger: logging.Logger, file_name: str) -> int:
    try:
        return _parse_int(file_name.replace(SETTINGS_SUFFIX, "", 1))
    except ValueError:
        logger.error("Can't parse int from filename: %s", file_name)
        raise InvalidSettingsFileNameError() from None


def find_seq_num(logger: logging.Logger, config_folder: str | os.PathLike[str]) -> int:
    """Find the requested sequence number.

    The environment variable wins; otherwise the most recently modified
    settings file is used, falling back to the highest number when several
    share the latest timestamp.
    """
    env_value = os.environ.get(CONFIG_SEQUENCE_NUMBER_ENV, "")
    if not env_value:
        logger.info(
            "could not read environment variable %s for getting sequence number",
            CONFIG_SEQUENCE_NUMBER_ENV,
        )
    elif _UNSIGNED.fullmatch(env_value) and int(env_value) < _UINT64_LIMIT:
        seq_no = int(env_value)
        logger.info(
            "using sequence number %d from environment variable %s",
            seq_no,
            CONFIG_SEQUENCE_NUMBER_ENV,
        )
        return seq_no
    else:
        logger.info("could not read sequence number string %s into unsigned integer", env_value)

    entries = sorted(os.scandir(config_folder), key=lambda entry: entry.name)
    matching = [entry.name for entry in entries if fnmatch.fnmatchcase(entry.name, "*" + SETTINGS_SUFFIX)]

    latest = -1
    newest: list[str] = []
    for entry in entries:
        if not (entry.is_file(follow_symlinks=False) and entry.name.endswith(SETTINGS_SUFFIX)):
            continue
        mtime = entry.stat(follow_symlinks=False).st_mtime_ns
        if mtime > latest:
            latest = mtime
            newest = [entry.name]
        elif mtime == latest:
            newest.append(entry.name)

    if not newest:
        logger.error("Cannot find the seqNo from %s. Not enough files", os.fspath(config_folder))
        raise NoSettingsFilesError()

    if len(newest) == 1:
        seq_no = _seq_from_file_name(logger, newest[0])
        if seq_no < 0:
            logger.error("Can't parse int from filename: %s", newest[0])
            raise InvalidSettingsFileNameError()
        return seq_no

    # Several files share the latest timestamp: choose the highest number.
    numbers = [_seq_from_file_name(logger, name) for name in matching]
    return max([0, *numbers])