"""Status reports written to the status folder for the guest agent."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

STATUS_PROTOCOL_VERSION = 1


class StatusType(str, Enum):
    TRANSITIONING = "transitioning"
    ERROR = "error"
    SUCCESS = "success"


@dataclass
class FormattedMessage:
    message: str
    lang: str = "en"

    def to_dict(self) -> dict[str, Any]:
        return {"lang": self.lang, "message": self.message}


@dataclass
class Status:
    operation: str
    status: StatusType | str
    formatted_message: FormattedMessage

    def to_dict(self) -> dict[str, Any]:
        value = self.status.value if isinstance(self.status, StatusType) else self.status
        return {
            "operation": self.operation,
            "status": value,
            "formattedMessage": self.formatted_message.to_dict(),
        }


@dataclass
class StatusItem:
    status: Status
    timestamp_utc: str = field(
        default_factory=lambda: datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    )
    version: int = STATUS_PROTOCOL_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "timestampUTC": self.timestamp_utc,
            "status": self.status.to_dict(),
        }


class StatusReport(list):
    """A list of status items, serialised as the agent expects."""

    def to_json(self) -> str:
        return json.dumps([item.to_dict() for item in self], indent="\t", ensure_ascii=False)

    def save(self, status_folder: str | os.PathLike[str], seq_no: int) -> None:
        """Write the report to ``<seq_no>.status`` atomically via a temporary file."""
        file_name = f"{seq_no}.status"
        final_path = os.path.join(status_folder, file_name)
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=file_name, dir=status_folder)
        except OSError as exc:
            raise OSError(f"status: failed to create temporary file: {exc}") from exc

        data = self.to_json().encode("utf-8")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
        except OSError as exc:
            raise OSError(f"status: failed to path={tmp_path} error={exc}") from exc

        try:
            os.replace(tmp_path, final_path)
        except OSError as exc:
            raise OSError(f"status: failed to move to path={final_path} error={exc}") from exc


StatusMessageFormatter = Callable[[str, "StatusType | str", str], str]


def new_status(status_type: StatusType | str, operation: str, message: str) -> StatusReport:
    """Create a report holding a single status item."""
    return StatusReport(
        [
            StatusItem(
                status=Status(
                    operation=operation,
                    status=status_type,
                    formatted_message=FormattedMessage(message=message),
                )
            )
        ]
    )


def status_msg(operation_name: str, status_type: StatusType | str, msg: str) -> str:
    """Build the human readable status message for an operation."""
    text = operation_name
    if status_type == StatusType.SUCCESS:
        text += " succeeded"
    elif status_type == StatusType.TRANSITIONING:
        text += " in progress"
    elif status_type == StatusType.ERROR:
        text += " failed"

    if msg:
        text += ": " + msg
    return text