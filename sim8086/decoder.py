"""Decoding of 8086 machine code into instruction objects."""

from __future__ import annotations

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

_REGISTERS = (tuple(Register)[:8], tuple(Register)[8:])
_JUMP_CONDITIONS = tuple(JumpCondition)
_LOOP_CONDITIONS = tuple(LoopCondition)

_EFFECTIVE_BASES = (
    (Register.BX, Register.SI),
    (Register.BX, Register.DI),
    (Register.BP, Register.SI),
    (Register.BP, Register.DI),
    (Register.SI,),
    (Register.DI,),
    (Register.BP,),
    (Register.BX,),
)

_ARITH_REG_MEM = {*range(0x00, 0x04), *range(0x28, 0x2C), *range(0x38, 0x3C)}
_ARITH_IMM_ACC = {0x04, 0x05, 0x2C, 0x2D, 0x3C, 0x3D}


class DecodeError(ValueError):
    """Raised when the byte stream cannot be decoded."""


def _signed8(value: int) -> int:
    return value - 0x100 if value & 0x80 else value


def _signed16(value: int) -> int:
    return value - 0x10000 if value & 0x8000 else value


def _register(wide: bool, code: int) -> Register:
    return _REGISTERS[int(wide)][code]


def _arithmetic_op(code: int) -> BinaryOp:
    try:
        return BinaryOp.from_arithmetic_encoding(code)
    except ValueError as exc:
        raise DecodeError(str(exc)) from None


class Decoder:
    """Decodes a byte stream of 8086 machine code, one instruction at a time."""

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)
        self.pos = 0

    def is_eof(self) -> bool:
        """Return whether every byte has been consumed."""
        return self.pos >= len(self.data)

    def decode_all(self) -> dict[int, Instruction]:
        """Decode the rest of the stream, keyed by each instruction's start offset."""
        instructions: dict[int, Instruction] = {}
        while not self.is_eof():
            start = self.pos
            instructions[start], _ = self.decode_next()
        return instructions

    def decode_next(self) -> tuple[Instruction, int]:
        """Decode one instruction; return it with its length in bytes."""
        start = self.pos
        opcode = self._read_u8()

        if opcode in _ARITH_REG_MEM:
            instruction = self._arithmetic_reg_mem(opcode)
        elif opcode in _ARITH_IMM_ACC:
            instruction = self._arithmetic_imm_to_acc(opcode)
        elif 0x80 <= opcode <= 0x83:
            instruction = self._arithmetic_imm_to_rm(opcode)
        elif 0x88 <= opcode <= 0x8B:
            instruction = self._mov_reg_mem(opcode)
        elif 0xA0 <= opcode <= 0xA3:
            instruction = self._mov_mem_accumulator(opcode)
        elif 0xB0 <= opcode <= 0xBF:
            instruction = self._mov_imm_to_reg(opcode)
        elif opcode in (0xC6, 0xC7):
            instruction = self._mov_imm_to_rm(opcode)
        elif 0x70 <= opcode <= 0x7F:
            instruction = JumpInstruction(
                _JUMP_CONDITIONS[opcode & 0x0F], _signed8(self._read_u8())
            )
        elif 0xE0 <= opcode <= 0xE3:
            instruction = LoopInstruction(
                _LOOP_CONDITIONS[opcode - 0xE0], _signed8(self._read_u8())
            )
        else:
            raise DecodeError(f"Unsupported opcode {opcode:#04x} at position {start}")

        return instruction, self.pos - start

    def _read_u8(self) -> int:
        if self.pos >= len(self.data):
            raise DecodeError(
                f"Unexpected end of byte stream while reading a byte at position {self.pos}"
            )
        byte = self.data[self.pos]
        self.pos += 1
        return byte

    def _read_u16(self) -> int:
        low = self._read_u8()
        high = self._read_u8()
        return low | (high << 8)

    def _immediate(self, wide: bool) -> Immediate:
        return Immediate(self._read_u16() if wide else self._read_u8(), wide)

    def _mov_imm_to_rm(self, opcode: int) -> Instruction:
        wide = bool(opcode & 0b1)
        dest = self._rm_operand(self._read_u8(), wide)
        return BinaryInstruction(BinaryOp.MOV, dest, self._immediate(wide))

    def _mov_reg_mem(self, opcode: int) -> Instruction:
        dest, src = self._reg_and_rm_operands(bool(opcode & 0b10), bool(opcode & 0b1))
        return BinaryInstruction(BinaryOp.MOV, dest, src)

    def _mov_imm_to_reg(self, opcode: int) -> Instruction:
        wide = bool(opcode & 0b1000)
        dest = RegisterOperand(_register(wide, opcode & 0b111))
        return BinaryInstruction(BinaryOp.MOV, dest, self._immediate(wide))

    def _mov_mem_accumulator(self, opcode: int) -> Instruction:
        to_accumulator = not opcode & 0b10
        wide = bool(opcode & 0b1)
        accumulator = RegisterOperand(_register(wide, 0))
        memory = MemoryOperand(MemoryAddress(displacement=self._read_u16()))
        if to_accumulator:
            return BinaryInstruction(BinaryOp.MOV, accumulator, memory)
        return BinaryInstruction(BinaryOp.MOV, memory, accumulator)

    def _arithmetic_reg_mem(self, opcode: int) -> Instruction:
        op = _arithmetic_op((opcode >> 3) & 0b111)
        dest, src = self._reg_and_rm_operands(bool(opcode & 0b10), bool(opcode & 0b1))
        return BinaryInstruction(op, dest, src)

    def _arithmetic_imm_to_rm(self, opcode: int) -> Instruction:
        wide = bool(opcode & 0b1)
        sign_extend = bool(opcode & 0b10)
        mod_rm = self._read_u8()
        op = _arithmetic_op((mod_rm >> 3) & 0b111)
        dest = self._rm_operand(mod_rm, wide)
        if wide and sign_extend:
            src = Immediate(_signed8(self._read_u8()) & 0xFFFF, True)
        else:
            src = self._immediate(wide)
        return BinaryInstruction(op, dest, src)

    def _arithmetic_imm_to_acc(self, opcode: int) -> Instruction:
        op = _arithmetic_op((opcode >> 3) & 0b111)
        wide = bool(opcode & 0b1)
        dest = RegisterOperand(_register(wide, 0))
        return BinaryInstruction(op, dest, self._immediate(wide))

    def _reg_and_rm_operands(self, reg_is_dest: bool, wide: bool) -> tuple[Operand, Operand]:
        mod_rm = self._read_u8()
        reg_op = RegisterOperand(_register(wide, (mod_rm >> 3) & 0b111))
        rm_op = self._rm_operand(mod_rm, wide)
        return (reg_op, rm_op) if reg_is_dest else (rm_op, reg_op)

    def _rm_operand(self, mod_rm: int, wide: bool) -> Operand:
        mod = mod_rm >> 6
        rm = mod_rm & 0b111
        if mod == 0b11:
            return RegisterOperand(_register(wide, rm))
        bases = _EFFECTIVE_BASES[rm]
        if mod == 0b00:
            if rm == 0b110:
                return MemoryOperand(MemoryAddress(displacement=self._read_u16()))
            return MemoryOperand(MemoryAddress(bases))
        if mod == 0b01:
            return MemoryOperand(MemoryAddress(bases, _signed8(self._read_u8())))
        return MemoryOperand(MemoryAddress(bases, _signed16(self._read_u16())))