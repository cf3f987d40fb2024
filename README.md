# vmhandler

`vmhandler` is a small framework for writing virtual machine extension
handlers. The guest agent starts a handler with a single operation name
(`install`, `uninstall`, `enable`, `update`, `disable` or `resetstate`), and
the framework handles the plumbing around it:

- reading `HandlerEnvironment.json` to learn the log, config and status
  folders, and working out the data folder;
- working out the requested sequence number and the last one processed;
- reading the `<seqNo>.settings` file with its public and protected settings;
- writing `<seqNo>.status` files atomically so the agent sees progress,
  success or failure;
- creating and removing the data folder on install and uninstall, and
  keeping track of whether the extension is disabled.

Your handler supplies callbacks for the operations it cares about.

## Writing a handler

```python
import sys

from vmhandler.extension import get_vm_extension
from vmhandler.initialization import get_initialization_info


def on_enable(ext):
    settings = ext.get_settings()
    # ... do the real work using settings.public_settings ...
    return "configuration applied"


def main():
    info = get_initialization_info(
        "MyExtension",
        "1.0.0",
        True,          # only run enable when the sequence number increases
        on_enable,
    )
    ext = get_vm_extension(info, None)
    ext.run(sys.argv)


if __name__ == "__main__":
    main()
```

`get_initialization_info` raises `ArgCannotBeNullOrEmptyError` for an empty
name or version and `ArgCannotBeNullError` for a missing enable callback. It
fills in the defaults: disable and reset-state support are on, a failed
install exits with code 52 and a failed uninstall or enable with code 3
(update, disable and resetstate always use 3). Change the fields of the
returned `InitializationInfo` to add `install_callback`,
`uninstall_callback`, `update_callback`, `disable_callback` or
`reset_state_callback`, to turn `supports_disable` or `supports_reset_state`
off, or to set `custom_status_formatter`.

An enable callback returns the message to report and raises to signal
failure. Other callbacks return nothing; failures of the install, uninstall,
update and reset-state callbacks are logged and not propagated, while a
failing disable callback fails the operation.

Passing `None` as the manager uses `ProductionEnvironmentManager`. Any object
with the methods of the `EnvironmentManager` protocol
(`get_handler_environment`, `find_seq_num`, `get_current_sequence_number`,
`get_handler_settings`, `set_sequence_number`) can be passed instead, for
example in tests.

## Operations

| operation    | what the framework does                                                     |
|--------------|-----------------------------------------------------------------------------|
| `install`    | creates the data folder if missing, then calls the install callback         |
| `uninstall`  | removes the data folder if present, then calls the uninstall callback       |
| `enable`     | checks the sequence number, removes the disable marker, runs your callback  |
| `disable`    | writes a `disable` marker file in the config folder, calls the callback     |
| `update`     | calls the update callback, or does nothing if there is none                 |
| `resetstate` | removes the data folder, then calls the reset-state callback                |

When `requires_seq_no_change` is set and the requested sequence number is not
greater than the last one recorded, enable exits with code 0 without running
the callback. Otherwise the new sequence number is recorded before the
callback runs.

Enable and disable write a status file for the requested sequence number.
With the default formatter `status_msg` the messages look like
`Enable in progress`, `Enable succeeded: <message>` or `Enable failed: <reason>`.

`VMExtension.run` picks the command from the arguments. An unknown
operation, or the wrong number of arguments, prints the usage line
(`VMExtension.usage`) and the extension version and exits with code 2. A
failing operation exits with that command's failure code.

## Sequence numbers

`vmhandler.seqno.find_seq_num` takes the requested sequence number from the
`ConfigSequenceNumber` environment variable when it holds an unsigned
integer; otherwise it uses the most recently modified `*.settings` file in the
config folder, choosing the highest number when several share the latest
timestamp. The last processed sequence number is kept in an `mrseq` file
(relative to the working directory by default; see
`ProductionEnvironmentManager.mrseq_path`).

## Status files

`vmhandler.status` can be used on its own:

```python
from vmhandler.status import StatusType, new_status, status_msg

report = new_status(
    StatusType.SUCCESS,
    "Enable",
    status_msg("Enable", StatusType.SUCCESS, "all good"),
)
report.save("/path/to/status", 5)   # writes /path/to/status/5.status
```

## What the package does not do

- It does not decrypt protected settings by itself. Pass a `decrypt`
  function `(config_folder, thumbprint, data) -> str` to
  `ProductionEnvironmentManager` or `get_handler_settings`; without one,
  reading protected settings raises `ExtensionError`.
- It does not write log files into the log folder or raise extension events;
  it logs through the standard `logging` module under the `vmhandler` logger
  name.
- It keeps the last processed sequence number only in the `mrseq` file, on
  every platform; it does not read or write the Windows registry.
- It installs no command of its own; your handler provides the program the
  agent starts.

## Tests

The test suite uses pytest; install the `test` extra to get it.