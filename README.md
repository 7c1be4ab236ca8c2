# sim8086

A small decoder and simulator for a subset of the Intel 8086 instruction set.
It reads a flat binary of 8086 machine code, writes a disassembly listing, and
then executes the program while logging every instruction and the changes it
makes to registers, flags and the instruction pointer.

## Supported instructions

- `mov` in its register, memory and immediate forms, including the
  accumulator/memory short forms
- `add`, `sub` and `cmp` with register, memory and immediate operands
- the conditional jumps `jo` … `jg`: all are decoded, but only `jz` and
  `jnz` can be executed
- `loop`, `loopz`, `loopnz` and `jcxz`

The simulator tracks the carry, parity, auxiliary-carry, zero and sign flags
and models one megabyte of memory into which the program is loaded at
address 0.

## Installation

```
pip install .
```

## Command-line use

```
sim8086 program.bin
```

For an input called `program.bin` this produces, in the current directory:

- `program_decoded.asm` – the disassembly, one instruction per line in
  address order;
- `program_memory.data` – the first 16 KiB of simulated memory after the
  program has finished.

The execution log and the final register state are printed to standard
output. Registers that end up zero are left out of the final listing; the
instruction pointer and flags are always shown. If the file cannot be read,
or the program cannot be decoded or executed, an error is printed to
standard error and the command exits with status 1.

## Library use

```python
from pathlib import Path

from sim8086.decoder import Decoder
from sim8086.executor import Executor
from sim8086.instruction import Register

code = Path("program.bin").read_bytes()

for address, instruction in sorted(Decoder(code).decode_all().items()):
    print(address, instruction)

executor = Executor(code)
memory = executor.run()
print(executor.register_value(Register.CX), executor.flags)
```

- `Decoder.decode_next()` decodes one instruction at the current position
  and returns it with its length in bytes; `Decoder.decode_all()` returns a
  dict from start offset to instruction.
- `Executor(program, out=None)` takes an optional text stream for the log
  (standard output by default). `Executor.step()` executes and logs one
  instruction and returns it; `Executor.run()` runs to the end of the program
  and returns the memory as a `bytearray`.
- `sim8086.cli.write_decoding` and `sim8086.cli.write_memory` write a listing
  and a 16 KiB memory image to a file.

Malformed or unsupported input raises `sim8086.decoder.DecodeError`; an
instruction that cannot be executed raises `sim8086.executor.ExecutionError`.

## Limitations

Only the instructions listed above are handled. Segment registers, the stack,
interrupts, unconditional jumps and calls are not modelled, and the overflow
flag is not tracked, so conditional jumps other than `jz` and `jnz` stop
execution with an error.

## Running the tests

```
pip install .[test]
pytest
```