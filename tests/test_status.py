import json
import re

import pytest

from vmhandler.status import (
    StatusReport,
    StatusType,
    new_status,
    status_msg,
)


def test_status_msg_succeeded_with_string():
    assert status_msg("yaba", StatusType.SUCCESS, "") == "yaba succeeded"


def test_status_msg_failed_with_msg():
    assert status_msg("", StatusType.ERROR, "flipper") == " failed: flipper"


def test_status_msg_in_progress_empty():
    assert status_msg("", StatusType.TRANSITIONING, "") == " in progress"


def test_status_msg_other():
    assert status_msg("yaba", "flooper", "flop") == "yaba: flop"


def test_status_msg_full():
    assert status_msg("yaba", StatusType.SUCCESS, "flop") == "yaba succeeded: flop"


def test_new_status():
    report = new_status(StatusType.ERROR, "WorldDomination", "bow before the unit test!")
    assert len(report) == 1
    assert report[0].status.operation == "WorldDomination"
    assert report[0].status.status == StatusType.ERROR
    assert report[0].version == 1
    assert report[0].status.formatted_message.lang == "en"
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", report[0].timestamp_utc)


def test_to_json_layout():
    report = new_status(StatusType.SUCCESS, "flip", "flop")
    text = report.to_json()
    assert "\n\t{" in text
    data = json.loads(text)
    assert data[0]["status"] == {
        "operation": "flip",
        "status": "success",
        "formattedMessage": {"lang": "en", "message": "flop"},
    }
    assert data[0]["version"] == 1
    assert "timestampUTC" in data[0]


def test_status_save_folder_doesnt_exist(tmp_path):
    report = new_status(StatusType.SUCCESS, "flip", "flop")
    with pytest.raises(OSError):
        report.save(tmp_path / "flopperdoodle", 5)


def test_status_save_new_file(tmp_path):
    report = new_status(StatusType.SUCCESS, "flip", "flop")
    report.save(tmp_path, 5)

    data = json.loads((tmp_path / "5.status").read_text())
    assert len(data) == 1
    assert data[0]["status"]["operation"] == "flip"
    assert data[0]["status"]["status"] == StatusType.SUCCESS.value
    assert sorted(p.name for p in tmp_path.iterdir()) == ["5.status"]


def test_status_save_existing_file(tmp_path):
    report = new_status(StatusType.SUCCESS, "flip", "flop")
    report.save(tmp_path, 7)
    second = new_status(StatusType.ERROR, "flip", "again")
    second.save(tmp_path, 7)

    data = json.loads((tmp_path / "7.status").read_text())
    assert data[0]["status"]["status"] == "error"
    assert data[0]["status"]["formattedMessage"]["message"] == "again"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["7.status"]


def test_empty_report_serialises_to_empty_list():
    assert json.loads(StatusReport().to_json()) == []