import pytest

from sim8086.decoder import DecodeError, Decoder
from sim8086.instruction import (
    BinaryInstruction,
    BinaryOp,
    Immediate,
    JumpCondition,
    JumpInstruction,
    LoopCondition,
    LoopInstruction,
    MemoryAddress,
    MemoryOperand,
    Register,
    RegisterOperand,
)


def decode_one(data):
    decoder = Decoder(bytes(data))
    instruction, length = decoder.decode_next()
    assert length == len(data)
    assert decoder.is_eof()
    return instruction


def test_register_to_register_mov():
    assert decode_one([0x89, 0xD9]) == BinaryInstruction(
        BinaryOp.MOV, RegisterOperand(Register.CX), RegisterOperand(Register.BX)
    )


def test_direction_bit_swaps_operands():
    forward = decode_one([0x89, 0xD9])
    backward = decode_one([0x8B, 0xD9])
    assert forward.dest == backward.src
    assert forward.src == backward.dest


def test_immediate_to_register():
    instr = decode_one([0xB9, 0x0C, 0x00])
    assert instr.dest == RegisterOperand(Register.CX)
    assert instr.src == Immediate(0x0C, True)


def test_byte_immediate_to_register():
    instr = decode_one([0xB4, 0x07])
    assert instr.dest == RegisterOperand(Register.AH)
    assert instr.src == Immediate(7, False)


def test_direct_address_operand():
    instr = decode_one([0x8B, 0x2E, 0x05, 0x00])
    assert instr.dest == RegisterOperand(Register.BP)
    assert instr.src == MemoryOperand(MemoryAddress(displacement=5))


def test_negative_disp8():
    instr = decode_one([0x8B, 0x41, 0xDB])
    address = instr.src.address
    assert address.registers == (Register.BX, Register.DI)
    assert address.displacement < 0
    assert address.displacement & 0xFF == 0xDB


def test_disp16_sign():
    instr = decode_one([0x8B, 0x86, 0x00, 0x80])
    address = instr.src.address
    assert address.registers == (Register.BP,)
    assert address.displacement & 0xFFFF == 0x8000
    assert address.displacement < 0


def test_no_displacement_addressing():
    instr = decode_one([0x88, 0x00])
    assert instr.dest == MemoryOperand(MemoryAddress((Register.BX, Register.SI)))
    assert instr.src == RegisterOperand(Register.AL)


def test_sign_extended_immediate():
    instr = decode_one([0x83, 0xC1, 0xFE])
    assert instr.op is BinaryOp.ADD
    assert instr.src.wide
    assert instr.src.value & 0xFF == 0xFE
    assert instr.src.value >> 8 == 0xFF


def test_accumulator_memory_moves():
    load = decode_one([0xA1, 0xFB, 0x09])
    store = decode_one([0xA3, 0xFB, 0x09])
    assert load.dest == RegisterOperand(Register.AX)
    assert load.src == MemoryOperand(MemoryAddress(displacement=0x09FB))
    assert store.dest == load.src
    assert store.src == load.dest


@pytest.mark.parametrize(
    "opcode, op", [(0x01, BinaryOp.ADD), (0x29, BinaryOp.SUB), (0x39, BinaryOp.CMP)]
)
def test_arithmetic_reg_mem_ops(opcode, op):
    assert decode_one([opcode, 0xD8]).op is op


@pytest.mark.parametrize(
    "opcode, op", [(0x05, BinaryOp.ADD), (0x2D, BinaryOp.SUB), (0x3D, BinaryOp.CMP)]
)
def test_arithmetic_imm_to_accumulator(opcode, op):
    instr = decode_one([opcode, 0x34, 0x12])
    assert instr.op is op
    assert instr.dest == RegisterOperand(Register.AX)
    assert instr.src == Immediate(0x1234, True)


def test_mov_immediate_to_memory():
    instr = decode_one([0xC7, 0x06, 0x10, 0x00, 0x2A, 0x00])
    assert instr.dest == MemoryOperand(MemoryAddress(displacement=0x10))
    assert instr.src == Immediate(0x2A, True)


def test_jump_and_loop():
    assert decode_one([0x75, 0xFC]) == JumpInstruction(JumpCondition.JNZ, -4)
    assert decode_one([0xE2, 0xFE]) == LoopInstruction(LoopCondition.LOOP, -2)
    assert str(decode_one([0x75, 0xFC])) == "jnz short $-2"


def test_decode_all_keys_are_offsets():
    data = bytes([0xB9, 0x0C, 0x00, 0x89, 0xD9, 0x75, 0xFC])
    instructions = Decoder(data).decode_all()
    assert sorted(instructions) == [0, 3, 5]
    assert instructions[5] == JumpInstruction(JumpCondition.JNZ, -4)


def test_lengths_cover_stream():
    data = bytes([0x8B, 0x41, 0xDB, 0xC7, 0x06, 0x10, 0x00, 0x2A, 0x00, 0xE2, 0xFE])
    decoder = Decoder(data)
    total = 0
    while not decoder.is_eof():
        _, length = decoder.decode_next()
        total += length
        assert decoder.pos == total
    assert total == len(data)


def test_empty_stream_is_eof():
    decoder = Decoder(b"")
    assert decoder.is_eof()
    assert decoder.decode_all() == {}


def test_unsupported_opcode():
    with pytest.raises(DecodeError):
        Decoder(b"\xf4").decode_next()


def test_truncated_instruction():
    with pytest.raises(DecodeError):
        Decoder(b"\x89").decode_next()


def test_invalid_arithmetic_field():
    with pytest.raises(DecodeError):
        Decoder(bytes([0x80, 0xC8, 0x01])).decode_next()