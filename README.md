# fredsys

`fredsys` holds the building blocks of a server that runs hardware tasks on
the reconfigurable slots of an FPGA. Software tasks connect over a Unix
socket, bind to hardware tasks and ask for them to run; the scheduler
reserves a slot, has it reconfigured when needed, starts the accelerator,
arms a watchdog timer and reports back when the task is done or has overrun.

It has no dependencies beyond the standard library.

## Modules

| Module | Purpose |
| --- | --- |
| `fredsys.parser` | `tokenize_line`, `tokenize_text` and `tokenize_file` for the layout description files. Tokens are split on spaces, commas and tabs; blank lines and lines starting with `#` are skipped. Raises `ParserError`. |
| `fredsys.fd_utils` | `create_socket_pair`, `byte_write`, `byte_read` and `set_fd_nonblock`. |
| `fredsys.logger` | `EventLogger`, a file log whose lines are prefixed with the microseconds elapsed since it was opened, filtered by `LogLevel` (`MUTE`, `SIMPLE`, `FULL`, `PEDANTIC`). |
| `fredsys.stopwatch` | `Stopwatch` with `start`, `stop`, `elapsed_ms` and `elapsed_us`. |
| `fredsys.buffctl` | `BuffCtl`, which opens the buffer-control device (`/dev/fred/buffctl` by default) and allocates and frees buffers through ioctl; `FredBuffIf` (the buffer descriptor, with `pack`/`unpack`), `PhyBit`, `ioctl_number` and `BuffCtlError`. |
| `fredsys.events` | The `EventHandler` base (`fileno`, `handle_event`, `describe`, `close`), `HandlerMode`, `HandlerOwnership`, and the `HandlerError` / `ClientDetached` exceptions. |
| `fredsys.slot` | `Slot`, a reconfigurable region with its state machine (`SlotState`); wrong transitions raise `SlotStateError`. |
| `fredsys.slot_timer` | `SlotTimer`, the per-slot watchdog with `arm` and `disarm`. |
| `fredsys.signals_recv` | `SignalsReceiver`, which makes SIGINT, SIGQUIT and SIGTERM readable on a descriptor and raises `ShutdownRequested` when one is handled. |
| `fredsys.scheduler_fred` | `FredScheduler` (`SchedMode.NORMAL` or `SchedMode.ALWAYS_RCFG`), with `push_accel_req`, `rcfg_complete`, `slot_complete` and `slot_timeout`; `NotifyAction` and `SchedulerError`. |
| `fredsys.scheduler_fred_rand` | `RandomFredScheduler`, which places requests on a random free slot and always reconfigures. |
| `fredsys.sys_layout` | `SysLayout.build`, `parse_partitions`, `parse_hw_tasks`, `slot_device_names`, `PartitionSpec`, `HwTaskSpec` and `LayoutError`. |
| `fredsys.sw_task_client` | `SwTaskClient`, the per-connection protocol handler, with `FredMsg`, `MsgHead`, `UserBuff`, `ClientState` and `user_dev_name`. |
| `fredsys.sw_tasks_listener` | `open_listening_socket` and `SwTasksListener`, which accepts connections (on `/tmp/fred_sock` by default) and hands each `SwTaskClient` to a reactor. |
| `fredsys.cyclic_client` | `CyclicClient`, a built-in client that requests every hardware task in turn, one at a time. |

## Layout files

The architecture file has one line per partition: its name and its number
of slots.

```
# name   slots
p0       2
p1       1
```

The hardware-task file has one line per hardware task: name, id, timeout in
microseconds (0 keeps the default), partition name, bitstream path, then the
sizes of its data buffers.

```
# name   id   timeout  partition  bitstreams  buffers...
sum      100  0        p0         sum         4096 4096 4096
```

`slot_device_names(p, s)` gives the slot and decoupler device names for a
partition index and slot index, e.g. `("slot_p0_s1", "pr_decoupler_p0_s1")`.

## Example

```python
from fredsys.parser import tokenize_text
from fredsys.sys_layout import parse_partitions
from fredsys.stopwatch import Stopwatch
from fredsys.logger import EventLogger, LogLevel

lines = tokenize_text("p0 2\n# comment\np1, 1\n")
partitions = parse_partitions(lines)   # [PartitionSpec('p0', 2), PartitionSpec('p1', 1)]

watch = Stopwatch()
watch.start()
# ... work ...
watch.stop()
print(watch.elapsed_us())

with EventLogger("fred.log", LogLevel.FULL) as log:
    log.log(LogLevel.FULL, "slot 0 of partition p0 started")
```

Errors are raised as exceptions (`SchedulerError`, `SlotStateError`,
`LayoutError`, `BuffCtlError`, `ParserError`, `HandlerError`,
`ClientDetached`) rather than returned as status codes.

## What this package does not do

`fredsys` is a set of components, not a runnable server:

- There is no command to start a server and no reactor or event loop; the
  handlers expect a reactor object with `add_event_handler(handler, mode,
  ownership)` to be supplied.
- It has no drivers for the reconfiguration device, the slot accelerators,
  the decouplers or the watchdog timers, and no partition or hardware-task
  classes. The scheduler, `Slot`, `SlotTimer`, `SysLayout` and the clients
  work with objects passed in that provide the attributes and methods named
  in their docstrings.
- `BuffCtl` only works where the buffer-control kernel device is present.