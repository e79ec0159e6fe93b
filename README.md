# procvisor

Building blocks for supervising long-running programs, working with
supervisord-style INI configuration files.

## What it offers

- **Configuration** – `procvisor.config.Config` loads a configuration file
  and the files named by its `[include]` section, applies `[program-default]`
  values to every `[program:…]` section, expands `numprocs` into one entry per
  process and returns program entries in start order (`get_programs`,
  `get_program_names`, `get_program`, `get_groups`, `get_event_listeners`,
  `get_supervisord`, `get_supervisorctl`, …).
- **Entries** – `procvisor.entry.Entry` gives typed access to a section's
  values: `get_string`, `get_int`, `get_bool`, `get_bytes` (`1024`, `2KB`,
  `3MB`, `4GB`), `get_env` for `A="x y",B=z` settings, `get_env_from_files`
  and `get_string_expression`.
- **Expressions** – `procvisor.string_expression.StringExpression` replaces
  `%(name)s` and `%(name)d` with values; environment variables are available
  as `ENV_<name>` and the host name as `host_node_name`.
- **INI reading** – `procvisor.ini.Ini` and `Section`, a small reader that
  merges the sections of several files.
- **Start order** – `procvisor.process_sort.sort_program` puts programs after
  those they name in `depends_on`, then the rest by ascending `priority`
  (default 999); a dependency cycle raises `ValueError`.
- **Groups** – `procvisor.process_group.ProcessGroup` maps programs to groups;
  `sub` reports the added, changed and removed groups between two mappings.
- **Events** – process state, log, communication, tick, supervisor state and
  group events (`procvisor.events`).
- **Event listeners** – `procvisor.listener.EventListener` delivers events to
  a listener program over its pipes using the `READY` / `RESULT` protocol;
  `EventListenerManager` (and `register_event_listener`, `emit_event`)
  subscribes listeners to event types, abstract types such as
  `PROCESS_STATE` covering all they derive. `ProcCommEventCapture` finds
  events framed by `<!--XSUPERVISOR:BEGIN-->` / `<!--XSUPERVISOR:END-->` in
  program output, and `start_tick_timer` emits `TICK_5`, `TICK_60` and
  `TICK_3600` events.
- **Syslog** – `procvisor.syslogging.open_syslog_writer` connects to the local
  syslog daemon and `open_remote_syslog_writer` to one given as
  `[protocol:]host[:port]`, falling back to `BackendSysLogWriter`, which keeps
  retrying from a background thread.
- **Readiness checks** – `procvisor.content_checker`: `BaseChecker` waits for
  text to be written to it, `TCPChecker` for text from a TCP port,
  `HTTPChecker` for a 2xx response and `ScriptChecker` for a command exiting
  with status 0.
- **Start-up helpers** – `procvisor.bootstrap.load_env_file`,
  `find_supervisord_conf` and `get_supervisord_log_file`.
- **Faults** – `procvisor.faults.Fault` with the `FaultCode` values.

## Installing

```
pip install .
```

## Example

```python
from procvisor.config import Config

config = Config("/etc/supervisord.conf")
config.load()
for entry in config.get_programs():
    print(entry.get_program_name(), entry.get_string("command", ""))
```

## pidproxy

`procvisor-pidproxy` runs a command that daemonizes itself, then forwards the
signals it receives to the pid written in the daemon's pid file. SIGTERM,
SIGINT and SIGQUIT are forwarded and then end the proxy.

```
procvisor-pidproxy [-exit-daemon-stop] <pidfile> <command> [args...]
```

With `-exit-daemon-stop`, the proxy exits with status 1 once the daemon is no
longer alive (checked every five seconds).

## What it does not do

There is no supervisor daemon that starts and restarts programs, no control
command, no XML-RPC or web interface, and no writers that store program
output in rotated log files. The package supplies the configuration, event,
syslog and checking pieces such a program is built from.

## Running the tests

```
pip install ".[test]"
pytest
```