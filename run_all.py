#!/usr/bin/env python3
"""
Command line entry point for the Snowflake ID generator.
Builds the process-wide generator from config and runs one component.
"""

import sys
import logging
import argparse

import config
from snowflake_id_generator import SnowflakeIDGenerator, SnowflakeError

logger = logging.getLogger("run_all")


def print_header(title):
    """Print a section header.

    Args:
        title (str): The title to print
    """
    width = 80
    print("\n" + "=" * width)
    print(f"{title:^{width}}")
    print("=" * width + "\n")


def run_id_generator(generator, count=5):
    """Generate a few IDs and show their fields."""
    print_header("BASIC ID GENERATOR DEMONSTRATION")
    print(f"Generator: {generator!r}")

    print(f"\nGenerating {count} IDs...")
    for i in range(count):
        id_val = generator.next_id()
        parsed = generator.parse_id(id_val)
        print(f"ID {i+1}: {id_val}")
        print(f"  Generated at: {parsed.generated_at.strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]}")
        print(f"  Datacenter: {parsed.datacenter_id}")
        print(f"  Worker: {parsed.worker_id}")
        print(f"  Sequence: {parsed.sequence}\n")


def run_decode(generator, id_val):
    """Print the fields of an existing ID."""
    parsed = generator.parse_id(id_val)
    for key, value in parsed._asdict().items():
        print(f"{key}: {value}")


def run_visualizer(generator, id_val=None):
    """Run the ID visualizer.

    Args:
        generator (SnowflakeIDGenerator): Layout to use, and source of a fresh ID
        id_val (int, optional): The ID to visualize
    """
    import snowflake_visualizer

    print_header("SNOWFLAKE ID VISUALIZER")

    if id_val is None:
        id_val = generator.next_id()
        print(f"Generated ID: {id_val}")

    snowflake_visualizer.visualize_binary(id_val, generator)


def run_simulator(datacenters, machines, ids_per_machine):
    """Run the distributed system simulator."""
    import snowflake_simulator

    print_header("DISTRIBUTED SYSTEM SIMULATOR")
    print(f"Simulating {datacenters} datacenters with {machines} machines each")

    simulator = snowflake_simulator.DistributedSystemSimulator(
        num_datacenters=datacenters,
        num_machines_per_dc=machines,
        epoch=config.EPOCH,
        worker_id_bits=config.WORKER_ID_BITS,
        datacenter_id_bits=config.DATACENTER_ID_BITS,
        sequence_bits=config.SEQUENCE_BITS,
    )
    simulator.simulate_load(ids_per_machine=ids_per_machine)
    simulator.display_results(limit=5)


def run_benchmark(generator, threads, ids_per_thread, rounds):
    """Run the concurrent benchmark against the shared generator."""
    import snowflake_simulator

    print_header("CONCURRENT BENCHMARK")
    print(f"{threads} threads x {ids_per_thread} IDs, {rounds} round(s)\n")

    results = snowflake_simulator.run_benchmark(
        generator,
        thread_count=threads,
        ids_per_thread=ids_per_thread,
        rounds=rounds,
    )
    snowflake_simulator.print_benchmark(results)
    return all(r.unique == r.total for r in results)


def build_parser():
    parser = argparse.ArgumentParser(description="Snowflake ID Generator")
    parser.add_argument("--worker-id", type=int, default=config.WORKER_ID, help="Worker ID of this node")
    parser.add_argument("--datacenter-id", type=int, default=config.DATACENTER_ID, help="Datacenter ID of this node")

    subparsers = parser.add_subparsers(dest="component", help="Component to run")

    basic_parser = subparsers.add_parser("basic", help="Generate and print a few IDs")
    basic_parser.add_argument("--count", type=int, default=5, help="Number of IDs to generate")

    decode_parser = subparsers.add_parser("decode", help="Decode an existing ID")
    decode_parser.add_argument("id", type=int, help="ID to decode")

    vis_parser = subparsers.add_parser("visualizer", help="Show the bit fields of an ID")
    vis_parser.add_argument("--id", type=int, help="Specific ID to visualize")

    sim_parser = subparsers.add_parser("simulator", help="Run distributed system simulator")
    sim_parser.add_argument("--datacenters", type=int, default=2)
    sim_parser.add_argument("--machines", type=int, default=3)
    sim_parser.add_argument("--ids", type=int, default=100, help="IDs per machine")

    bench_parser = subparsers.add_parser("benchmark", help="Run concurrent benchmark")
    bench_parser.add_argument("--threads", type=int, default=config.BENCHMARK_THREADS)
    bench_parser.add_argument("--ids", type=int, default=config.BENCHMARK_IDS_PER_THREAD, help="IDs per thread")
    bench_parser.add_argument("--rounds", type=int, default=config.BENCHMARK_ROUNDS)

    return parser


def main(argv=None):
    """Main entry point.

    Returns:
        int: Process exit status
    """
    logging.basicConfig(level=getattr(logging, config.LOG_LEVEL), format=config.LOG_FORMAT)

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.component is None:
        parser.print_help()
        return 0

    try:
        # The one generator shared by everything in this process
        generator = SnowflakeIDGenerator.from_config(
            worker_id=args.worker_id,
            datacenter_id=args.datacenter_id,
        )

        if args.component == "basic":
            run_id_generator(generator, args.count)
        elif args.component == "decode":
            run_decode(generator, args.id)
        elif args.component == "visualizer":
            run_visualizer(generator, args.id)
        elif args.component == "simulator":
            run_simulator(args.datacenters, args.machines, args.ids)
        elif args.component == "benchmark":
            if not run_benchmark(generator, args.threads, args.ids, args.rounds):
                logger.error("Duplicate IDs generated")
                return 1
    except SnowflakeError as e:
        logger.error(f"{args.component} failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
