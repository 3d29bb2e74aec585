import pytest

from fredsys.sys_layout import (
    HwTaskSpec,
    LayoutError,
    PartitionSpec,
    SysLayout,
    parse_hw_tasks,
    parse_partitions,
    slot_device_names,
)


class FakePartition:
    def __init__(self, spec, index):
        self.name = spec.name
        self.index = index
        self.slots_count = spec.slots_count
        self.closed = False
        self.reactors = []

    def register_slots(self, reactor):
        self.reactors.append(reactor)

    def describe(self):
        return f"partition {self.name}"

    def close(self):
        self.closed = True


class FakeHwTask:
    def __init__(self, spec, partition):
        self.id = spec.id
        self.name = spec.name
        self.partition = partition
        self.spec = spec
        self.closed = False

    def describe(self):
        return f"hw-task {self.name}"

    def close(self):
        self.closed = True


ARCH = "# partitions\np0 2\np1, 1\n"
HW_TASKS = "aes 100 0 p0 bits/aes 1024 2048\nfir 7 500 p1 bits/fir\n"


def write_files(tmp_path, arch=ARCH, hw=HW_TASKS):
    arch_path = tmp_path / "arch.csv"
    hw_path = tmp_path / "hw_tasks.csv"
    arch_path.write_text(arch)
    hw_path.write_text(hw)
    return arch_path, hw_path


def test_parse_partitions():
    specs = parse_partitions([["p0", "2"], ["p1", "3"]])
    assert specs == [PartitionSpec("p0", 2), PartitionSpec("p1", 3)]


def test_parse_partitions_missing_or_bad_count_is_zero():
    specs = parse_partitions([["p0"], ["p1", "abc"], ["p2", "-4"]])
    assert [s.slots_count for s in specs] == [0, 0, 0]


def test_parse_partitions_leading_digits():
    assert parse_partitions([["p0", "12abc"]])[0].slots_count == 12


def test_parse_hw_tasks():
    specs = parse_hw_tasks([["aes", "100", "0", "p0", "bits/aes", "1024", "2048"]])
    assert specs == [
        HwTaskSpec(
            name="aes",
            id=100,
            timeout_us=None,
            partition_name="p0",
            bits_path="bits/aes",
            data_buffs_sizes=(1024, 2048),
        )
    ]


def test_parse_hw_tasks_timeout_kept_when_nonzero():
    spec = parse_hw_tasks([["fir", "7", "500", "p1", "bits/fir"]])[0]
    assert spec.timeout_us == 500
    assert spec.data_buffs_sizes == ()


def test_parse_hw_tasks_without_partition_raises():
    with pytest.raises(LayoutError):
        parse_hw_tasks([["aes", "100", "0"]])


def test_slot_device_names():
    assert slot_device_names(0, 1) == ("slot_p0_s1", "pr_decoupler_p0_s1")


def test_build_creates_partitions_and_hw_tasks(tmp_path):
    arch_path, hw_path = write_files(tmp_path)
    layout = SysLayout.build(arch_path, hw_path, FakePartition, FakeHwTask)
    assert [p.name for p in layout.partitions] == ["p0", "p1"]
    assert [p.index for p in layout.partitions] == [0, 1]
    assert [t.name for t in layout.hw_tasks] == ["aes", "fir"]
    assert layout.hw_tasks[0].partition is layout.partitions[0]
    assert layout.hw_tasks[1].partition is layout.partitions[1]


def test_get_hw_task(tmp_path):
    arch_path, hw_path = write_files(tmp_path)
    layout = SysLayout.build(arch_path, hw_path, FakePartition, FakeHwTask)
    assert layout.get_hw_task(7).name == "fir"
    assert layout.get_hw_task(100).name == "aes"
    assert layout.get_hw_task(9999) is None


def test_build_unknown_partition_closes_everything(tmp_path):
    created = []

    def factory(spec, index):
        partition = FakePartition(spec, index)
        created.append(partition)
        return partition

    arch_path, hw_path = write_files(tmp_path, hw="aes 100 0 missing bits/aes\n")
    with pytest.raises(LayoutError):
        SysLayout.build(arch_path, hw_path, factory, FakeHwTask)
    assert len(created) == 2
    assert all(p.closed for p in created)


def test_build_missing_file_raises(tmp_path):
    with pytest.raises(LayoutError):
        SysLayout.build(tmp_path / "nope", tmp_path / "nope2", FakePartition, FakeHwTask)


def test_build_factory_failure_is_layout_error(tmp_path):
    def broken(spec, index):
        raise RuntimeError("boom")

    arch_path, hw_path = write_files(tmp_path)
    with pytest.raises(LayoutError):
        SysLayout.build(arch_path, hw_path, broken, FakeHwTask)


def test_register_slots_reaches_every_partition(tmp_path):
    arch_path, hw_path = write_files(tmp_path)
    layout = SysLayout.build(arch_path, hw_path, FakePartition, FakeHwTask)
    reactor = object()
    layout.register_slots(reactor)
    assert all(p.reactors == [reactor] for p in layout.partitions)


def test_describe_lists_everything(tmp_path):
    arch_path, hw_path = write_files(tmp_path)
    layout = SysLayout.build(arch_path, hw_path, FakePartition, FakeHwTask)
    text = layout.describe()
    assert "\tpartition p0" in text
    assert "\thw-task fir" in text
    assert text.index("Partitions:") < text.index("Hw-tasks:")


def test_close_releases_all(tmp_path):
    arch_path, hw_path = write_files(tmp_path)
    layout = SysLayout.build(arch_path, hw_path, FakePartition, FakeHwTask)
    partitions = list(layout.partitions)
    hw_tasks = list(layout.hw_tasks)
    with layout:
        pass
    assert all(p.closed for p in partitions)
    assert all(t.closed for t in hw_tasks)
    assert layout.partitions == [] and layout.hw_tasks == []