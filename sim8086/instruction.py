"""Instruction model for the 8086 subset handled by the decoder and executor."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class Register(Enum):
    """General-purpose registers, 8-bit halves first, then 16-bit registers."""

    AL = "al"
    CL = "cl"
    DL = "dl"
    BL = "bl"
    AH = "ah"
    CH = "ch"
    DH = "dh"
    BH = "bh"
    AX = "ax"
    CX = "cx"
    DX = "dx"
    BX = "bx"
    SP = "sp"
    BP = "bp"
    SI = "si"
    DI = "di"

    def index(self) -> tuple[int, int]:
        """Return ``(width, encoding)``: width 0 for 8-bit, 1 for 16-bit."""
        return _REGISTER_INDEX[self]

    def __str__(self) -> str:
        return self.value


_REGISTER_INDEX = {reg: divmod(pos, 8) for pos, reg in enumerate(Register)}


@dataclass(frozen=True)
class MemoryAddress:
    """An effective address: base/index registers plus an optional displacement.

    With no registers, ``displacement`` is an unsigned direct address.
    Otherwise it is a signed displacement, or ``None`` when absent.
    """

    registers: tuple[Register, ...] = ()
    displacement: int | None = None

    def __str__(self) -> str:
        if not self.registers:
            return f"[{self.displacement}]"
        base = " + ".join(str(reg) for reg in self.registers)
        if self.displacement is None:
            return f"[{base}]"
        if self.displacement >= 0:
            return f"[{base} + {self.displacement}]"
        return f"[{base} - {-self.displacement}]"


@dataclass(frozen=True)
class RegisterOperand:
    """A register used as an operand."""

    register: Register

    def __str__(self) -> str:
        return str(self.register)


@dataclass(frozen=True)
class MemoryOperand:
    """A memory location used as an operand."""

    address: MemoryAddress

    def __str__(self) -> str:
        return str(self.address)


@dataclass(frozen=True)
class Immediate:
    """An immediate value; ``wide`` marks a 16-bit word rather than a byte."""

    value: int
    wide: bool

    def __str__(self) -> str:
        return f"{'word' if self.wide else 'byte'} {self.value}"


Operand = Union[RegisterOperand, MemoryOperand, Immediate]


class JumpCondition(Enum):
    """Conditional jumps, in opcode order (0x70 to 0x7F)."""

    JO = "jo"
    JNO = "jno"
    JB = "jb"
    JNB = "jnb"
    JZ = "jz"
    JNZ = "jnz"
    JBE = "jbe"
    JA = "ja"
    JS = "js"
    JNS = "jns"
    JP = "jp"
    JNP = "jnp"
    JL = "jl"
    JGE = "jge"
    JLE = "jle"
    JG = "jg"

    def __str__(self) -> str:
        return self.value


class LoopCondition(Enum):
    """Loop instructions, in opcode order (0xE0 to 0xE3)."""

    LOOPNZ = "loopnz"
    LOOPZ = "loopz"
    LOOP = "loop"
    JCXZ = "jcxz"

    def __str__(self) -> str:
        return self.value


class BinaryOp(Enum):
    """Two-operand operations."""

    MOV = "mov"
    ADD = "add"
    SUB = "sub"
    CMP = "cmp"

    @classmethod
    def from_arithmetic_encoding(cls, code: int) -> BinaryOp:
        """Map the 3-bit arithmetic operation field to an operation."""
        try:
            return _ARITHMETIC_ENCODINGS[code]
        except KeyError:
            raise ValueError(f"Invalid arithmetic op encoding: {code:b}") from None

    def __str__(self) -> str:
        return self.value


_ARITHMETIC_ENCODINGS = {
    0b000: BinaryOp.ADD,
    0b101: BinaryOp.SUB,
    0b111: BinaryOp.CMP,
}


@dataclass(frozen=True)
class BinaryInstruction:
    """A two-operand instruction such as ``mov`` or ``add``."""

    op: BinaryOp
    dest: Operand
    src: Operand

    def __str__(self) -> str:
        return f"{self.op} {self.dest}, {self.src}"


@dataclass(frozen=True)
class JumpInstruction:
    """A conditional short jump with a signed 8-bit displacement."""

    condition: JumpCondition
    displacement: int

    def __str__(self) -> str:
        return f"{self.condition} short ${self.displacement + 2:+d}"


@dataclass(frozen=True)
class LoopInstruction:
    """A loop-family instruction with a signed 8-bit displacement."""

    condition: LoopCondition
    displacement: int

    def __str__(self) -> str:
        return f"{self.condition} ${self.displacement + 2:+d}"


Instruction = Union[BinaryInstruction, JumpInstruction, LoopInstruction]