import time
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from collections import defaultdict
from typing import List, NamedTuple

from tabulate import tabulate

from snowflake_id_generator import SnowflakeIDGenerator

logger = logging.getLogger(__name__)


class BenchmarkResult(NamedTuple):
    total: int
    unique: int
    elapsed: float
    last_timestamp: int
    sequence: int

    @property
    def rate(self):
        return self.total / self.elapsed if self.elapsed > 0 else float("inf")


class DistributedSystemSimulator:
    """Simulates a distributed system with multiple datacenters and machines."""

    def __init__(self, num_datacenters=2, num_machines_per_dc=3, **generator_options):
        """Initialize the simulator with the specified number of datacenters and machines.

        Args:
            num_datacenters (int): Number of datacenters to simulate
            num_machines_per_dc (int): Number of machines per datacenter
            **generator_options: Passed to every SnowflakeIDGenerator (epoch, bit widths, clock)

        Raises:
            ValueError: If the layout cannot address that many datacenters or machines
        """
        self.num_datacenters = num_datacenters
        self.num_machines_per_dc = num_machines_per_dc
        self.generators = {}
        self.generated_ids = []
        self.id_lock = threading.Lock()

        # One generator per (datacenter, machine) pair, so identities never repeat
        for dc_id in range(num_datacenters):
            for machine_id in range(num_machines_per_dc):
                self.generators[(dc_id, machine_id)] = SnowflakeIDGenerator(
                    worker_id=machine_id, datacenter_id=dc_id, **generator_options
                )

    def generate_id(self, dc_id, machine_id):
        """Generate a unique ID from a specific datacenter and machine.

        Args:
            dc_id (int): Datacenter ID
            machine_id (int): Machine ID

        Returns:
            int: A unique ID
        """
        generator = self.generators.get((dc_id, machine_id))
        if not generator:
            raise ValueError(f"No generator found for datacenter {dc_id}, machine {machine_id}")

        snowflake_id = generator.next_id()

        with self.id_lock:
            self.generated_ids.append(generator.parse_id(snowflake_id))

        return snowflake_id

    def _worker(self, work_item):
        dc_id, machine_id, count = work_item
        return [self.generate_id(dc_id, machine_id) for _ in range(count)]

    def simulate_load(self, ids_per_machine=100, max_workers=None):
        """Simulate load by generating multiple IDs from different machines.

        Args:
            ids_per_machine (int): Number of IDs to generate per machine
            max_workers (int, optional): Maximum number of worker threads

        Returns:
            list: List of all generated IDs
        """
        work_items = [
            (dc_id, machine_id, ids_per_machine)
            for dc_id, machine_id in self.generators
        ]

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            all_ids = list(executor.map(self._worker, work_items))

        # Flatten the list of lists
        return [id_val for sublist in all_ids for id_val in sublist]

    def statistics(self):
        """Summarize the IDs generated so far.

        Returns:
            dict: total, unique and duplicate counts plus per-timestamp,
                per-machine and per-sequence distributions
        """
        unique_ids = set()
        duplicates = []
        timestamp_dist = defaultdict(int)
        dist_by_machine = defaultdict(int)
        sequence_dist = defaultdict(int)

        for id_info in self.generated_ids:
            if id_info.id in unique_ids:
                duplicates.append(id_info.id)
            else:
                unique_ids.add(id_info.id)
            timestamp_dist[id_info.timestamp] += 1
            dist_by_machine[(id_info.datacenter_id, id_info.worker_id)] += 1
            sequence_dist[id_info.sequence] += 1

        return {
            "total": len(self.generated_ids),
            "unique": len(unique_ids),
            "duplicates": duplicates,
            "timestamps": dict(timestamp_dist),
            "machines": dict(dist_by_machine),
            "sequences": dict(sequence_dist),
        }

    def display_results(self, limit=10):
        """Display the results of the simulation.

        Args:
            limit (int): Maximum number of IDs to display
        """
        # Sorting by ID also sorts by time
        sample = sorted(self.generated_ids, key=lambda x: x.id)[:limit]
        headers = ["ID", "Generated Time", "DC ID", "Machine ID", "Sequence"]
        table_data = [
            [
                id_info.id,
                id_info.generated_at.strftime('%Y-%m-%d %H:%M:%S.%f')[:-3],
                id_info.datacenter_id,
                id_info.worker_id,
                id_info.sequence,
            ]
            for id_info in sample
        ]

        print("\n=== Sample Generated IDs ===")
        print(tabulate(table_data, headers=headers, tablefmt="grid"))

        stats = self.statistics()

        print("\n=== Statistics ===")
        print(f"Total IDs generated: {stats['total']}")
        print(f"Unique IDs: {stats['unique']}")
        print(f"Duplicate IDs: {len(stats['duplicates'])}")

        if stats['duplicates']:
            print(f"WARNING: {len(stats['duplicates'])} duplicate IDs found!")
        else:
            print("SUCCESS: All IDs are unique!")

        busy_timestamps = sorted(stats['timestamps'].items(), key=lambda x: x[1], reverse=True)[:5]

        print("\n=== Busiest Milliseconds ===")
        print(tabulate(busy_timestamps, headers=["Timestamp", "Count"], tablefmt="grid"))

        print("\n=== Distribution by Datacenter and Machine ===")
        machine_table = [
            [dc_id, machine_id, count]
            for (dc_id, machine_id), count in sorted(stats['machines'].items())
        ]
        print(tabulate(machine_table, headers=["DC ID", "Machine ID", "Count"], tablefmt="grid"))

        print("\n=== Sequence Number Distribution ===")
        seq_table = sorted(stats['sequences'].items())[:10]
        print(tabulate(seq_table, headers=["Sequence", "Count"], tablefmt="grid"))


def run_benchmark(generator, thread_count=1000, ids_per_thread=5000, rounds=1) -> List[BenchmarkResult]:
    """Hammer one generator from many threads at once.

    Every thread requests ids_per_thread IDs; a round ends when all threads have
    finished. The IDs of each round are checked for duplicates.

    Args:
        generator (SnowflakeIDGenerator): The shared generator
        thread_count (int): Number of concurrent threads
        ids_per_thread (int): IDs requested by each thread
        rounds (int): Number of rounds

    Returns:
        list: One BenchmarkResult per round

    Raises:
        SnowflakeError: The first error raised by a generating thread, unchanged
    """
    results = []
    for round_no in range(rounds):
        batches = [None] * thread_count
        errors = [None] * thread_count

        def worker(slot):
            try:
                batches[slot] = [generator.next_id() for _ in range(ids_per_thread)]
            except Exception as e:
                errors[slot] = e

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(thread_count)]

        begin = time.perf_counter()
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        elapsed = time.perf_counter() - begin

        failed = [e for e in errors if e is not None]
        if failed:
            logger.error(f"{len(failed)} of {thread_count} benchmark threads failed")
            raise failed[0]

        unique = set()
        total = 0
        for batch in batches:
            unique.update(batch)
            total += len(batch)

        result = BenchmarkResult(
            total=total,
            unique=len(unique),
            elapsed=elapsed,
            last_timestamp=generator.last_timestamp,
            sequence=generator.sequence,
        )
        logger.info(
            f"Round {round_no + 1}: {result.unique}/{result.total} unique IDs "
            f"in {result.elapsed:.3f}s"
        )
        results.append(result)

    return results


def print_benchmark(results):
    """Print benchmark results as a table.

    Args:
        results (list): BenchmarkResult objects from run_benchmark
    """
    headers = ["Round", "Total", "Unique", "Seconds", "IDs/sec", "Last Timestamp", "Sequence"]
    rows = [
        [
            i + 1,
            r.total,
            r.unique,
            f"{r.elapsed:.3f}",
            f"{r.rate:,.0f}",
            r.last_timestamp,
            r.sequence,
        ]
        for i, r in enumerate(results)
    ]
    print(tabulate(rows, headers=headers, tablefmt="grid"))
