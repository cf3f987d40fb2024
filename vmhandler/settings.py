"""Reading the handler settings file placed by the guest agent."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable

from vmhandler.errors import (
    ExtensionError,
    InvalidProtectedSettingsDataError,
    InvalidSettingsFileError,
    InvalidSettingsRuntimeSettingsCountError,
    NoCertificateThumbprintError,
)

SETTINGS_FILE_SUFFIX = ".settings"

PUBLIC_SETTINGS_KEY = "publicSettings"
PROTECTED_SETTINGS_KEY = "protectedSettings"
THUMBPRINT_KEY = "protectedSettingsCertThumbprint"

Decryptor = Callable[[str, str, bytes], str]
"""Decrypts protected settings: (config_folder, thumbprint, encrypted bytes) -> text."""


@dataclass(frozen=True)
class HandlerSettings:
    """Settings handed to the extension, with protected settings decrypted."""

    public_settings: str = ""
    protected_settings: str = ""


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def _string_field(container: dict[str, Any], key: str) -> str:
    value = container.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"field {key!r} must be a string")
    return value


def _extract_runtime_settings(document: Any) -> list[dict[str, Any]]:
    """Validate the document's shape and return the handler settings it holds."""
    if document is None:
        return []
    if not isinstance(document, dict):
        raise TypeError("settings document must be an object")
    runtime = document.get("runtimeSettings")
    if runtime is None:
        return []
    if not isinstance(runtime, list):
        raise TypeError("runtimeSettings must be an array")

    extracted = []
    for container in runtime:
        if container is None:
            container = {}
        if not isinstance(container, dict):
            raise TypeError("runtimeSettings entries must be objects")
        handler = container.get("handlerSettings")
        if handler is None:
            handler = {}
        if not isinstance(handler, dict):
            raise TypeError("handlerSettings must be an object")
        extracted.append(
            {
                PUBLIC_SETTINGS_KEY: handler.get(PUBLIC_SETTINGS_KEY),
                PROTECTED_SETTINGS_KEY: _string_field(handler, PROTECTED_SETTINGS_KEY),
                THUMBPRINT_KEY: _string_field(handler, THUMBPRINT_KEY),
            }
        )
    return extracted


def parse_handler_settings_file(logger: logging.Logger, path: str | os.PathLike[str]) -> dict[str, Any]:
    """Parse a settings file such as ``0.settings`` into its single handler settings.

    The result maps ``publicSettings``, ``protectedSettings`` and
    ``protectedSettingsCertThumbprint`` to their values; an empty file
    yields empty settings.
    """
    try:
        with open(path, "rb") as handle:
            content = handle.read()
    except OSError as exc:
        logger.error("parseHandlerSettingsFile failed. Error reading %s: %s", os.fspath(path), exc)
        raise InvalidSettingsFileError() from exc

    if not content:
        return {PUBLIC_SETTINGS_KEY: None, PROTECTED_SETTINGS_KEY: "", THUMBPRINT_KEY: ""}

    try:
        document = json.loads(content, parse_constant=_reject_constant)
        runtime_settings = _extract_runtime_settings(document)
    except (ValueError, TypeError) as exc:
        logger.error("parseHandlerSettingsFile failed. error parsing json: %s", exc)
        raise InvalidSettingsFileError() from exc

    if len(runtime_settings) != 1:
        logger.error(
            "parseHandlerSettingsFile failed. wrong runtimeSettings count. expected:1, got:%d",
            len(runtime_settings),
        )
        raise InvalidSettingsRuntimeSettingsCountError()

    return runtime_settings[0]


def _unmarshal_protected_settings(
    logger: logging.Logger,
    config_folder: str,
    raw: dict[str, Any],
    decrypt: Decryptor | None,
) -> str:
    encoded = raw[PROTECTED_SETTINGS_KEY]
    if not encoded:
        return ""
    thumbprint = raw[THUMBPRINT_KEY]
    if not thumbprint:
        logger.error("parseHandlerSettingsFile failed due to no settings cert thumbprint")
        raise NoCertificateThumbprintError()

    try:
        decoded = base64.b64decode(encoded.replace("\r", "").replace("\n", ""), validate=True)
    except (binascii.Error, ValueError) as exc:
        logger.error("parseHandlerSettingsFile failed to decode base64: %s", exc)
        raise InvalidProtectedSettingsDataError() from exc

    if decrypt is None:
        raise ExtensionError("no decryptor is available for protected settings")
    return decrypt(config_folder, thumbprint, decoded)


def _marshal(value: Any) -> str:
    text = json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    return (
        text.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def get_handler_settings(
    logger: logging.Logger,
    config_folder: str | os.PathLike[str],
    seq_no: int,
    decrypt: Decryptor | None = None,
) -> HandlerSettings:
    """Read ``<seq_no>.settings`` from the config folder and decrypt its protected part."""
    folder = os.fspath(config_folder)
    path = os.path.join(folder, f"{seq_no}{SETTINGS_FILE_SUFFIX}")
    raw = parse_handler_settings_file(logger, path)
    protected = _unmarshal_protected_settings(logger, folder, raw, decrypt)

    public = raw[PUBLIC_SETTINGS_KEY]
    public_json = "" if public is None else _marshal(public)
    return HandlerSettings(public_settings=public_json, protected_settings=protected)