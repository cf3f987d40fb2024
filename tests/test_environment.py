import json
import logging
import sys

import pytest

from vmhandler.environment import HandlerEnvironment, ProductionEnvironmentManager
from vmhandler.errors import ExtensionError, SequenceNumberNotFoundError
from vmhandler.seqno import read_sequence_number_file
from vmhandler.utils import data_folder

LOGGER = logging.getLogger("vmhandler.tests.environment")

VALID_ENVIRONMENT = [
    {
        "version": 1.0,
        "handlerEnvironment": {
            "logFolder": "mylogFolder",
            "configFolder": "myconfigFolder",
            "statusFolder": "mystatusFolder",
            "heartbeatFile": "myheartbeatFile",
            "deploymentid": "mydeploymentid",
            "rolename": "myrolename",
            "instance": "myinstance",
            "hostResolverAddress": "myhostResolverAddress",
            "eventsFolder": "",
        },
    }
]


def write_environment(directory, text):
    (directory / "HandlerEnvironment.json").write_text(text, encoding="utf-8")


class FakeRetriever:
    def __init__(self, value=None, error=None):
        self.value = value
        self.error = error

    def get_sequence_number(self, name, version):
        if self.error is not None:
            raise self.error
        return self.value


def test_valid_handler_environment(tmp_path):
    write_environment(tmp_path, json.dumps(VALID_ENVIRONMENT))
    manager = ProductionEnvironmentManager(directory=str(tmp_path), platform="linux")
    he = manager.get_handler_environment("yaba", "1.0")
    assert he.log_folder == "mylogFolder"
    assert he.config_folder == "myconfigFolder"
    assert he.status_folder == "mystatusFolder"
    assert he.heartbeat_file == "myheartbeatFile"
    assert he.deployment_id == "mydeploymentid"
    assert he.role_name == "myrolename"
    assert he.instance == "myinstance"
    assert he.host_resolver_address == "myhostResolverAddress"
    assert he.events_folder == ""
    assert he.data_folder == data_folder("yaba", "1.0", "linux")


def test_environment_read_from_program_directory(tmp_path, monkeypatch):
    write_environment(tmp_path, json.dumps(VALID_ENVIRONMENT))
    monkeypatch.setattr(sys, "argv", [str(tmp_path / "program")])
    he = ProductionEnvironmentManager().get_handler_environment("yaba", "1.0")
    assert he.log_folder == "mylogFolder"


def test_multiple_handler_environments(tmp_path):
    entries = [
        {"version": 1.0, "handlerEnvironment": {"logFolder": "mylogFolder1"}},
        {"version": 2.0, "handlerEnvironment": {"logFolder": "mylogFolder2"}},
    ]
    write_environment(tmp_path, json.dumps(entries))
    manager = ProductionEnvironmentManager(directory=str(tmp_path))
    with pytest.raises(ExtensionError) as excinfo:
        manager.get_handler_environment("yaba", "1.0")
    assert "expected 1 config in parsed HandlerEnvironment" in str(excinfo.value)


def test_cannot_find_handler_environment(tmp_path):
    manager = ProductionEnvironmentManager(directory=str(tmp_path))
    with pytest.raises(ExtensionError):
        manager.get_handler_environment("yaba", "1.0")


def test_cannot_parse_handler_environment(tmp_path):
    write_environment(tmp_path, "flarfablarg")
    manager = ProductionEnvironmentManager(directory=str(tmp_path))
    with pytest.raises(ExtensionError):
        manager.get_handler_environment("yaba", "1.0")


def test_missing_fields_default_to_empty():
    he = HandlerEnvironment.from_dict({"logFolder": "mylogFolder"})
    assert he.log_folder == "mylogFolder"
    assert he.events_folder == ""
    assert he.config_folder == ""


def test_non_string_field_rejected():
    with pytest.raises(ExtensionError):
        HandlerEnvironment.from_dict({"logFolder": 5})


def test_current_sequence_number_not_found_is_zero():
    manager = ProductionEnvironmentManager()
    retriever = FakeRetriever(error=SequenceNumberNotFoundError())
    assert manager.get_current_sequence_number(LOGGER, retriever, "yaba", "5.0") == 0


def test_current_sequence_number_found():
    manager = ProductionEnvironmentManager()
    assert manager.get_current_sequence_number(LOGGER, FakeRetriever(value=42), "yaba", "5.0") == 42


def test_find_seq_num_uses_settings_files(tmp_path, monkeypatch):
    monkeypatch.delenv("ConfigSequenceNumber", raising=False)
    (tmp_path / "157.settings").write_text("this doesn't matter")
    assert ProductionEnvironmentManager().find_seq_num(LOGGER, str(tmp_path)) == 157


def test_get_handler_settings_reads_requested_file(tmp_path, monkeypatch):
    monkeypatch.delenv("ConfigSequenceNumber", raising=False)
    public = {"Flipper": "flip", "Flopper": "flop"}
    document = {"runtimeSettings": [{"handlerSettings": {"publicSettings": public}}]}
    (tmp_path / "3.settings").write_text(json.dumps(document))
    he = HandlerEnvironment(config_folder=str(tmp_path))
    hs = ProductionEnvironmentManager().get_handler_settings(LOGGER, he)
    assert json.loads(hs.public_settings) == public
    assert hs.protected_settings == ""


def test_set_sequence_number_round_trip(tmp_path):
    path = tmp_path / "mrseq"
    manager = ProductionEnvironmentManager(mrseq_path=str(path))
    manager.set_sequence_number("yaba", "5.0", 42)
    assert read_sequence_number_file(path) == 42