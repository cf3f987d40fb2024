"""Locating the handler environment and the services the extension depends on."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Protocol

from vmhandler import seqno, settings
from vmhandler.errors import ExtensionError
from vmhandler.settings import Decryptor, HandlerSettings
from vmhandler.utils import current_process_working_dir, data_folder

HANDLER_ENV_FILE_NAME = "HandlerEnvironment.json"

_FIELD_NAMES = {
    "logFolder": "log_folder",
    "configFolder": "config_folder",
    "statusFolder": "status_folder",
    "heartbeatFile": "heartbeat_file",
    "deploymentid": "deployment_id",
    "rolename": "role_name",
    "instance": "instance",
    "hostResolverAddress": "host_resolver_address",
    "eventsFolder": "events_folder",
}


@dataclass
class HandlerEnvironment:
    """Folders and identifiers the guest agent provides to the extension."""

    log_folder: str = ""
    config_folder: str = ""
    status_folder: str = ""
    heartbeat_file: str = ""
    deployment_id: str = ""
    role_name: str = ""
    instance: str = ""
    host_resolver_address: str = ""
    events_folder: str = ""
    data_folder: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any], data_folder: str = "") -> HandlerEnvironment:
        """Build an environment from the agent's ``handlerEnvironment`` object."""
        values: dict[str, str] = {}
        for key, attribute in _FIELD_NAMES.items():
            value = data.get(key)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ExtensionError(f"handler environment field {key!r} must be a string")
            values[attribute] = value
        return cls(data_folder=data_folder, **values)


class EnvironmentManager(Protocol):
    """Everything the extension needs from the machine it runs on."""

    def get_handler_environment(self, name: str, version: str) -> HandlerEnvironment:
        """Return the folders the agent set up for the extension."""

    def find_seq_num(self, logger: logging.Logger, config_folder: str) -> int:
        """Return the sequence number the agent requests."""

    def get_current_sequence_number(
        self, logger: logging.Logger, retriever: seqno.SequenceNumberRetriever, name: str, version: str
    ) -> int:
        """Return the sequence number the extension last ran."""

    def get_handler_settings(self, logger: logging.Logger, handler_env: HandlerEnvironment) -> HandlerSettings:
        """Return the settings for the requested sequence number."""

    def set_sequence_number(self, name: str, version: str, seq_no: int) -> None:
        """Record the sequence number the extension is now running."""


@dataclass
class ProductionEnvironmentManager:
    """Environment manager backed by the real files the agent places."""

    directory: str | None = None
    mrseq_path: str = seqno.MOST_RECENT_SEQUENCE_FILE_NAME
    decrypt: Decryptor | None = None
    platform: str | None = None

    def _environment_directory(self) -> str:
        if self.directory is not None:
            return self.directory
        try:
            return current_process_working_dir()
        except (OSError, ValueError) as exc:
            raise ExtensionError(f"cannot find base directory of the running process: {exc}") from exc

    def get_handler_environment(self, name: str, version: str) -> HandlerEnvironment:
        path = os.path.join(self._environment_directory(), HANDLER_ENV_FILE_NAME)
        try:
            with open(path, "rb") as handle:
                content = handle.read()
        except OSError as exc:
            raise ExtensionError(f"cannot read handler environment file {path}: {exc}") from exc

        try:
            parsed = json.loads(content)
        except ValueError as exc:
            raise ExtensionError(f"cannot parse handler environment file {path}: {exc}") from exc
        if not isinstance(parsed, list):
            raise ExtensionError(f"cannot parse handler environment file {path}: expected a list")
        if len(parsed) != 1:
            raise ExtensionError(f"expected 1 config in parsed HandlerEnvironment, found: {len(parsed)}")

        entry = parsed[0]
        if not isinstance(entry, dict):
            raise ExtensionError(f"cannot parse handler environment file {path}: expected an object")
        env_data = entry.get("handlerEnvironment") or {}
        if not isinstance(env_data, dict):
            raise ExtensionError(f"cannot parse handler environment file {path}: bad handlerEnvironment")

        return HandlerEnvironment.from_dict(env_data, data_folder=data_folder(name, version, self.platform))

    def find_seq_num(self, logger: logging.Logger, config_folder: str) -> int:
        return seqno.find_seq_num(logger, config_folder)

    def get_current_sequence_number(
        self, logger: logging.Logger, retriever: seqno.SequenceNumberRetriever, name: str, version: str
    ) -> int:
        return seqno.get_current_sequence_number(logger, retriever, name, version)

    def get_handler_settings(self, logger: logging.Logger, handler_env: HandlerEnvironment) -> HandlerSettings:
        seq_no = self.find_seq_num(logger, handler_env.config_folder)
        return settings.get_handler_settings(logger, handler_env.config_folder, seq_no, self.decrypt)

    def set_sequence_number(self, name: str, version: str, seq_no: int) -> None:
        seqno.set_sequence_number(name, version, seq_no, self.mrseq_path)