"""Decoder and simulator for a subset of the Intel 8086 instruction set."""

__version__ = "0.1.0"