import pytest

from snowflake_id_generator import SnowflakeIDGenerator, InvalidIdentity, ClockMovedBackward
from snowflake_simulator import DistributedSystemSimulator, run_benchmark, print_benchmark
from snowflake_visualizer import split_binary, visualize_binary


def test_simulate_load_unique_across_machines():
    simulator = DistributedSystemSimulator(num_datacenters=2, num_machines_per_dc=3)
    ids = simulator.simulate_load(ids_per_machine=500)

    assert len(ids) == 3000
    assert len(set(ids)) == 3000

    stats = simulator.statistics()
    assert stats["total"] == 3000
    assert stats["unique"] == 3000
    assert stats["duplicates"] == []
    assert stats["machines"] == {(dc, m): 500 for dc in range(2) for m in range(3)}
    assert sum(stats["sequences"].values()) == 3000


def test_simulator_rejects_unaddressable_machines():
    with pytest.raises(InvalidIdentity):
        DistributedSystemSimulator(num_datacenters=1, num_machines_per_dc=17)


def test_simulator_unknown_generator():
    simulator = DistributedSystemSimulator(num_datacenters=1, num_machines_per_dc=1)
    with pytest.raises(ValueError, match="No generator found"):
        simulator.generate_id(5, 5)


def test_display_results(capsys):
    simulator = DistributedSystemSimulator(num_datacenters=1, num_machines_per_dc=2)
    simulator.simulate_load(ids_per_machine=20)
    simulator.display_results(limit=3)

    out = capsys.readouterr().out
    assert "Sample Generated IDs" in out
    assert "Total IDs generated: 40" in out
    assert "SUCCESS: All IDs are unique!" in out


def test_run_benchmark(capsys):
    generator = SnowflakeIDGenerator(0, 0)
    results = run_benchmark(generator, thread_count=20, ids_per_thread=500, rounds=2)

    assert len(results) == 2
    for result in results:
        assert result.total == 10000
        assert result.unique == 10000
        assert result.elapsed > 0
        assert 0 <= result.sequence <= generator.sequence_mask

    assert results[1].last_timestamp >= results[0].last_timestamp

    print_benchmark(results)
    out = capsys.readouterr().out
    assert "IDs/sec" in out
    assert "10000" in out


def test_split_binary():
    generator = SnowflakeIDGenerator(3, 7)
    id_val = (12345 << 22) | (7 << 18) | (3 << 14) | 9

    fields = split_binary(id_val, generator)
    assert [name for name, _, _ in fields] == ["Sign bit", "Timestamp", "Datacenter ID", "Worker ID", "Sequence"]
    assert sum(width for _, width, _ in fields) == 64
    assert "".join(bits for _, _, bits in fields) == bin(id_val)[2:].zfill(64)

    values = {name: int(bits, 2) for name, _, bits in fields}
    assert values["Timestamp"] == 12345
    assert values["Datacenter ID"] == 7
    assert values["Worker ID"] == 3
    assert values["Sequence"] == 9


def test_split_binary_zero_width_field():
    generator = SnowflakeIDGenerator(0, 0, datacenter_id_bits=0)
    fields = dict((name, bits) for name, _, bits in split_binary(1, generator))
    assert fields["Datacenter ID"] == ""
    assert fields["Sequence"].endswith("1")


def test_visualize_binary(capsys):
    generator = SnowflakeIDGenerator(1, 2)
    visualize_binary(generator.next_id(), generator)

    out = capsys.readouterr().out
    assert "Timestamp (41)" in out
    assert "Worker Id: 1" in out
    assert "Datacenter Id: 2" in out


class RegressingClock:
    """Reports a fixed millisecond, then jumps back after a number of reads."""

    def __init__(self, start, reads_before_jump=50, jump=990):
        self.start = start
        self.reads = 0
        self.reads_before_jump = reads_before_jump
        self.jump = jump

    def __call__(self):
        self.reads += 1
        if self.reads > self.reads_before_jump:
            return self.start - self.jump
        return self.start


def test_run_benchmark_propagates_clock_moved_backward():
    start = SnowflakeIDGenerator.EPOCH + 10000
    generator = SnowflakeIDGenerator(0, 0, clock=RegressingClock(start))

    with pytest.raises(ClockMovedBackward) as excinfo:
        run_benchmark(generator, thread_count=4, ids_per_thread=100, rounds=1)

    assert excinfo.value.offset == 990
    assert generator.last_timestamp == start
