from snowflake_id_generator import SnowflakeIDGenerator


def split_binary(snowflake_id, generator):
    """Split a snowflake ID into its binary fields.

    Args:
        snowflake_id (int): The snowflake ID to split
        generator (SnowflakeIDGenerator): Generator whose layout produced the ID

    Returns:
        list: (name, width, bits) tuples from the most significant field down
    """
    binary = bin(snowflake_id)[2:].zfill(64)

    widths = [
        ("Sign bit", 1),
        ("Timestamp", generator.timestamp_bits),
        ("Datacenter ID", generator.datacenter_id_bits),
        ("Worker ID", generator.worker_id_bits),
        ("Sequence", generator.sequence_bits),
    ]

    fields = []
    start = 0
    for name, width in widths:
        fields.append((name, width, binary[start:start + width]))
        start += width
    return fields


def visualize_binary(snowflake_id, generator=None):
    """Print a snowflake ID in binary, field by field, followed by its decoded values.

    Args:
        snowflake_id (int): The snowflake ID to visualize
        generator (SnowflakeIDGenerator, optional): Layout to decode with; defaults
            to one built from config
    """
    if generator is None:
        generator = SnowflakeIDGenerator.from_config()

    fields = split_binary(snowflake_id, generator)

    print(f"\n=== Binary Representation of ID: {snowflake_id} ===\n")
    for name, width, bits in fields:
        label = f"{name} ({width})"
        print(f"{label:<20}: {bits or '-'}")

    print("\n=== Decimal Values ===\n")
    for name, _, bits in fields:
        print(f"{name:<15}: {int(bits, 2) if bits else 0}")

    parsed = generator.parse_id(snowflake_id)
    print("\n=== Parsed ID ===\n")
    for key, value in parsed._asdict().items():
        print(f"{key.replace('_', ' ').title()}: {value}")
