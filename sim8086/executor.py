"""Execution of decoded 8086 instructions against a simulated machine state."""

from __future__ import annotations

import sys
from dataclasses import dataclass, replace
from typing import TextIO

from sim8086.decoder import Decoder
from sim8086.instruction import (
    BinaryInstruction,
    BinaryOp,
    Immediate,
    Instruction,
    JumpCondition,
    JumpInstruction,
    LoopCondition,
    LoopInstruction,
    MemoryAddress,
    MemoryOperand,
    Operand,
    Register,
    RegisterOperand,
)

MEMORY_SIZE = 1024 * 1024

_WIDE_REGISTERS = tuple(Register)[8:]


class ExecutionError(RuntimeError):
    """Raised when an instruction cannot be executed."""


@dataclass
class Flags:
    """The subset of CPU flags the simulator maintains."""

    carry: bool = False
    parity: bool = False
    auxiliary_carry: bool = False
    zero: bool = False
    sign: bool = False

    def __str__(self) -> str:
        letters = (
            ("C", self.carry),
            ("P", self.parity),
            ("A", self.auxiliary_carry),
            ("Z", self.zero),
            ("S", self.sign),
        )
        return "".join(letter for letter, is_set in letters if is_set)


class Executor:
    """Loads a program into 1 MiB of memory and executes it instruction by instruction."""

    def __init__(self, program: bytes, out: TextIO | None = None) -> None:
        program = bytes(program)
        if len(program) > MEMORY_SIZE:
            raise ExecutionError(
                f"Program of {len(program)} bytes does not fit in {MEMORY_SIZE} bytes of memory"
            )
        self.memory = bytearray(MEMORY_SIZE)
        self.memory[: len(program)] = program
        self.flags = Flags()
        self.ip = 0
        self.end = len(program)
        self._registers = [0] * 8
        self._out = out if out is not None else sys.stdout

    # --- Registers ---

    def register_value(self, register: Register) -> int:
        """Return the current value of a 16-bit register or an 8-bit half."""
        wide, code = register.index()
        if wide:
            return self._registers[code]
        row = self._registers[code & 0b11]
        return (row >> 8) & 0xFF if code >> 2 else row & 0xFF

    def _set_register(self, register: Register, value: int) -> None:
        wide, code = register.index()
        if wide:
            self._registers[code] = value & 0xFFFF
            return
        row_index = code & 0b11
        row = self._registers[row_index]
        if code >> 2:
            self._registers[row_index] = (row & 0x00FF) | ((value & 0xFF) << 8)
        else:
            self._registers[row_index] = (row & 0xFF00) | (value & 0xFF)

    # --- Running ---

    def run(self) -> bytearray:
        """Execute until the end of the program, log every step, and return memory."""
        self._print("\nStart of execution log:")
        self._print("--------------------------")
        while self.ip < self.end:
            self.step()
        self._print("--------------------------")
        self._log_final_state()
        return self.memory

    def step(self) -> Instruction:
        """Decode and execute the instruction at ``ip``, log it, and return it."""
        start_ip = self.ip
        start_flags = replace(self.flags)

        instruction, length = Decoder(self.memory[self.ip : self.end]).decode_next()

        initial_state = self._logged_operand_values(instruction)
        self._execute(instruction)
        final_state = self._logged_operand_values(instruction)

        if self.ip == start_ip:
            self.ip += length

        self._log_step(instruction, start_ip, initial_state, final_state, start_flags)
        return instruction

    # --- Execution ---

    def _execute(self, instruction: Instruction) -> None:
        if isinstance(instruction, BinaryInstruction):
            self._execute_binary(instruction)
        elif isinstance(instruction, JumpInstruction):
            self._execute_jump(instruction)
        elif isinstance(instruction, LoopInstruction):
            self._execute_loop(instruction)
        else:
            raise ExecutionError(f"Unknown instruction {instruction!r}")

    def _branch(self, displacement: int) -> None:
        target = self.ip + 2 + displacement
        if target < 0:
            raise ExecutionError(f"Branch target {target} is outside memory")
        self.ip = target

    def _execute_loop(self, instruction: LoopInstruction) -> None:
        cx = self.register_value(Register.CX)
        new_cx = (cx - 1) & 0xFFFF
        self._set_register(Register.CX, new_cx)

        condition = instruction.condition
        if condition is LoopCondition.LOOP:
            should_loop = new_cx != 0
        elif condition is LoopCondition.LOOPZ:
            should_loop = new_cx != 0 and self.flags.zero
        elif condition is LoopCondition.LOOPNZ:
            should_loop = new_cx != 0 and not self.flags.zero
        else:
            should_loop = cx == 0

        if should_loop:
            self._branch(instruction.displacement)

    def _execute_jump(self, instruction: JumpInstruction) -> None:
        condition = instruction.condition
        if condition is JumpCondition.JZ:
            should_jump = self.flags.zero
        elif condition is JumpCondition.JNZ:
            should_jump = not self.flags.zero
        else:
            raise ExecutionError(f"Jump condition {condition} not supported")

        if should_jump:
            self._branch(instruction.displacement)

    def _execute_binary(self, instruction: BinaryInstruction) -> None:
        dest, src = instruction.dest, instruction.src
        width = self._operation_width(dest, src)
        if instruction.op is BinaryOp.MOV:
            self._write_operand(dest, self._read_operand(src, width), width)
        else:
            self._execute_arithmetic(instruction.op, dest, src, width)

    @staticmethod
    def _operation_width(dest: Operand, src: Operand) -> int:
        if isinstance(dest, RegisterOperand):
            return dest.register.index()[0]
        if isinstance(dest, MemoryOperand):
            if isinstance(src, RegisterOperand):
                return src.register.index()[0]
            if isinstance(src, Immediate):
                return int(src.wide)
            raise ExecutionError("Cannot infer operand width from memory-to-memory operation")
        raise ExecutionError(f"Invalid destination operand {dest}")

    def _execute_arithmetic(self, op: BinaryOp, dest: Operand, src: Operand, width: int) -> None:
        mask = 0xFFFF if width else 0xFF
        left = self._read_operand(dest, width) & mask
        right = self._read_operand(src, width) & mask

        if op is BinaryOp.ADD:
            raw = left + right
            carry = raw > mask
            aux_carry = (left & 0xF) + (right & 0xF) > 0xF
        else:
            raw = left - right
            carry = left < right
            aux_carry = (left & 0xF) < (right & 0xF)
        result = raw & mask

        self.flags.carry = carry
        self.flags.auxiliary_carry = aux_carry
        self.flags.zero = result == 0
        self.flags.sign = bool(result & (0x8000 if width else 0x80))
        self.flags.parity = bin(result & 0xFF).count("1") % 2 == 0

        if op is not BinaryOp.CMP:
            self._write_operand(dest, result, width)

    # --- Operands ---

    def _read_operand(self, operand: Operand, width: int) -> int:
        if isinstance(operand, Immediate):
            return operand.value
        if isinstance(operand, RegisterOperand):
            return self.register_value(operand.register)
        index = self._memory_index(operand.address)
        if width:
            return int.from_bytes(self.memory[index : index + 2], "little")
        return self.memory[index]

    def _write_operand(self, operand: Operand, value: int, width: int) -> None:
        if isinstance(operand, RegisterOperand):
            self._set_register(operand.register, value)
        elif isinstance(operand, MemoryOperand):
            index = self._memory_index(operand.address)
            if width:
                self.memory[index : index + 2] = (value & 0xFFFF).to_bytes(2, "little")
            else:
                self.memory[index] = value & 0xFF
        else:
            raise ExecutionError(f"Invalid destination operand {operand}")

    def _memory_index(self, address: MemoryAddress) -> int:
        if not address.registers:
            return (address.displacement or 0) & 0xFFFF
        offset = sum(self.register_value(reg) for reg in address.registers)
        offset += address.displacement or 0
        return offset & 0xFFFF

    # --- Logging ---

    def _print(self, text: str) -> None:
        print(text, file=self._out)

    def _logged_operand_values(self, instruction: Instruction) -> list[tuple[Operand, int]]:
        if not isinstance(instruction, BinaryInstruction):
            return []
        return [
            (operand, self.register_value(operand.register))
            for operand in (instruction.dest, instruction.src)
            if isinstance(operand, RegisterOperand)
        ]

    def _log_step(
        self,
        instruction: Instruction,
        start_ip: int,
        initial_state: list[tuple[Operand, int]],
        final_state: list[tuple[Operand, int]],
        start_flags: Flags,
    ) -> None:
        changes = []
        for operand, initial in initial_state:
            final = next((value for op, value in final_state if op == operand), None)
            if final is not None and final != initial:
                changes.append(f"{operand.register}:0x{initial:x}->0x{final:x}")
        if start_flags != self.flags:
            changes.append(f"flags:{start_flags}->{self.flags}")
        if start_ip != self.ip:
            changes.append(f"ip:0x{start_ip:x}->0x{self.ip:x}")

        line = f"{str(instruction):<20}"
        if changes:
            line += "; " + " ".join(changes)
        self._print(line)

    def _log_final_state(self) -> None:
        self._print("\nFinal registers:")
        for register in _WIDE_REGISTERS:
            value = self.register_value(register)
            if value:
                self._print(f"     {register}: 0x{value:04x} ({value})")
        self._print(f"     ip: 0x{self.ip:04x} ({self.ip})")
        self._print(f"  flags: {self.flags}\n")