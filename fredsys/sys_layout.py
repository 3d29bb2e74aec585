"""System layout: the partitions of the fabric and the hw-tasks they can host."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from os import PathLike
from typing import Any, Callable, Iterable, Optional, Sequence

from .parser import ParserError, tokenize_file

_INT_RE = re.compile(r"\s*([+-]?\d+)")

_HW_TASK_FIXED_TOKENS = 5


class LayoutError(Exception):
    """Raised when the system layout cannot be built."""


@dataclass(frozen=True)
class PartitionSpec:
    """One line of the architecture file: a partition and its number of slots."""

    name: str
    slots_count: int


@dataclass(frozen=True)
class HwTaskSpec:
    """One line of the hw-tasks file.

    ``timeout_us`` is None when the file gives 0, meaning the default timeout.
    """

    name: str
    id: int
    timeout_us: Optional[int]
    partition_name: str
    bits_path: Optional[str]
    data_buffs_sizes: tuple[int, ...] = field(default_factory=tuple)


def _token(line: Sequence[str], index: int) -> Optional[str]:
    return line[index] if index < len(line) else None


def _to_int(token: Optional[str]) -> int:
    """Leading decimal integer of a token, 0 when there is none."""
    if token is None:
        return 0
    match = _INT_RE.match(token)
    return int(match.group(1)) if match else 0


def _to_uint32(token: Optional[str]) -> int:
    return _to_int(token) & 0xFFFFFFFF


def parse_partitions(lines: Iterable[Sequence[str]]) -> list[PartitionSpec]:
    """Turn tokenized architecture lines into partition specifications."""
    specs = []
    for line in lines:
        name = _token(line, 0)
        if name is None:
            raise LayoutError("empty partition line")
        specs.append(PartitionSpec(name=name, slots_count=max(0, _to_int(_token(line, 1)))))
    return specs


def parse_hw_tasks(lines: Iterable[Sequence[str]]) -> list[HwTaskSpec]:
    """Turn tokenized hw-task lines into hw-task specifications.

    Tokens: name, id, timeout in microseconds, partition name, bitstreams
    path, then one size for each data buffer.
    """
    specs = []
    for line in lines:
        name = _token(line, 0)
        partition_name = _token(line, 3)
        if name is None or partition_name is None:
            raise LayoutError(f"partition not found for HW-task {name}")
        timeout_us = _to_uint32(_token(line, 2))
        sizes = tuple(_to_uint32(tok) for tok in line[_HW_TASK_FIXED_TOKENS:])
        specs.append(
            HwTaskSpec(
                name=name,
                id=_to_uint32(_token(line, 1)),
                timeout_us=timeout_us or None,
                partition_name=partition_name,
                bits_path=_token(line, 4),
                data_buffs_sizes=sizes,
            )
        )
    return specs


def slot_device_names(partition_index: int, slot_index: int) -> tuple[str, str]:
    """Device names of a slot and of its decoupler, as in the device tree."""
    return (
        f"slot_p{partition_index}_s{slot_index}",
        f"pr_decoupler_p{partition_index}_s{slot_index}",
    )


def _read(path: str | PathLike[str]) -> list[list[str]]:
    try:
        return tokenize_file(path)
    except ParserError as exc:
        raise LayoutError(str(exc)) from exc


PartitionFactory = Callable[[PartitionSpec, int], Any]
HwTaskFactory = Callable[[HwTaskSpec, Any], Any]


class SysLayout:
    """Partitions and hw-tasks of the running system.

    Partitions expose ``name``, ``register_slots(reactor)``, ``describe()``
    and ``close()``; hw-tasks expose ``id``, ``describe()`` and ``close()``.
    """

    def __init__(self, partitions: Iterable[Any], hw_tasks: Iterable[Any]) -> None:
        self.partitions = list(partitions)
        self.hw_tasks = list(hw_tasks)

    @classmethod
    def build(
        cls,
        arch_path: str | PathLike[str],
        hw_tasks_path: str | PathLike[str],
        partition_factory: PartitionFactory,
        hw_task_factory: HwTaskFactory,
    ) -> "SysLayout":
        """Read both files and create partitions first, then hw-tasks.

        ``partition_factory(spec, index)`` builds a partition with its slots;
        ``hw_task_factory(spec, partition)`` builds a hw-task in that partition.
        """
        layout = cls([], [])
        try:
            for index, spec in enumerate(parse_partitions(_read(arch_path))):
                try:
                    layout.partitions.append(partition_factory(spec, index))
                except LayoutError:
                    raise
                except Exception as exc:
                    raise LayoutError(f"unable to initialize partition {spec.name}") from exc

            for spec in parse_hw_tasks(_read(hw_tasks_path)):
                partition = layout._find_partition(spec.partition_name)
                if partition is None:
                    raise LayoutError(f"partition not found for HW-task {spec.name}")
                try:
                    layout.hw_tasks.append(hw_task_factory(spec, partition))
                except LayoutError:
                    raise
                except Exception as exc:
                    raise LayoutError(f"unable to initialize HW-task {spec.name}") from exc
        except BaseException:
            layout.close()
            raise
        return layout

    def _find_partition(self, name: str) -> Optional[Any]:
        return next((p for p in self.partitions if p.name == name), None)

    def get_hw_task(self, hw_task_id: int) -> Optional[Any]:
        """Hw-task with the given id, or None."""
        return next((t for t in self.hw_tasks if t.id == hw_task_id), None)

    def register_slots(self, reactor: Any) -> None:
        """Register the slots of every partition with the reactor."""
        if reactor is None:
            raise ValueError("reactor is required")
        for partition in self.partitions:
            partition.register_slots(reactor)

    def describe(self) -> str:
        rule = "-" * 90
        lines = [f"{'-' * 41} Layout {'-' * 41}", "Partitions:"]
        lines.extend(f"\t{p.describe()}" for p in self.partitions)
        lines.append("Hw-tasks:")
        lines.extend(f"\t{t.describe()}" for t in self.hw_tasks)
        lines.append(rule)
        return "\n".join(lines)

    def close(self) -> None:
        """Release every partition and hw-task."""
        partitions, self.partitions = self.partitions, []
        hw_tasks, self.hw_tasks = self.hw_tasks, []
        for partition in partitions:
            partition.close()
        for hw_task in hw_tasks:
            hw_task.close()

    def __enter__(self) -> "SysLayout":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()