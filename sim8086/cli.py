"""Command-line entry point: disassemble and simulate an 8086 binary."""

from __future__ import annotations

import sys
from collections.abc import Mapping
from pathlib import Path

from sim8086.decoder import DecodeError, Decoder
from sim8086.executor import ExecutionError, Executor
from sim8086.instruction import Instruction

MEMORY_IMAGE_SIZE = 16384


def write_decoding(instructions: Mapping[int, Instruction], path: str | Path) -> None:
    """Write instructions to ``path``, one per line, ordered by address."""
    with open(path, "w", encoding="utf-8") as output:
        for address in sorted(instructions):
            output.write(f"{instructions[address]}\n")


def write_memory(memory: bytes, path: str | Path) -> None:
    """Write the first 16 KiB of ``memory`` to ``path``."""
    Path(path).write_bytes(bytes(memory[:MEMORY_IMAGE_SIZE]))


def main(argv: list[str] | None = None) -> int:
    """Decode the given binary, simulate it, and write the listing and memory image."""
    if argv is None:
        argv = sys.argv[1:]
    if len(argv) != 1:
        print("Usage: sim8086 <input_binary_file_path>", file=sys.stderr)
        return 1

    input_path = Path(argv[0])
    stem = input_path.stem
    if not stem:
        print("Input filepath has no stem", file=sys.stderr)
        return 1
    output_file = f"{stem}_decoded.asm"
    image_file = f"{stem}_memory.data"

    print("Starting 8086 simulator...")
    try:
        program = input_path.read_bytes()
        write_decoding(Decoder(program).decode_all(), output_file)
        memory = Executor(program).run()
        write_memory(memory, image_file)
    except (OSError, DecodeError, ExecutionError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print("Simulation complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())