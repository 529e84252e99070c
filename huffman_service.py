# filename: huffman_service.py

import json
import logging
import math
import os
from dataclasses import dataclass, fields
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from huffman_core import (
    bits_to_str,
    build_tree,
    count_frequencies,
    decode,
    encode,
    format_tree,
)

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_CODEC_LOGGERS = ("huffman_core", "huffman_service")


@dataclass
class HuffmanConfig:
    """Settings for a HuffmanService session"""
    trace_tree: bool = False
    tree_indent: str = "  "
    log_level: str = "WARNING"

    def __post_init__(self):
        if not isinstance(self.trace_tree, bool):
            raise ValueError(f"trace_tree must be a bool, got {self.trace_tree!r}")
        if not isinstance(self.tree_indent, str) or not self.tree_indent:
            raise ValueError("tree_indent must be a non-empty string")
        self.log_level = str(self.log_level).upper()
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"unknown log level: {self.log_level}")

    @classmethod
    def from_env(cls, prefix: str = "HUFFMAN_", environ=None) -> "HuffmanConfig":
        """
        Build a config from environment overrides.

        Variables are named ``{prefix}{FIELD}``, e.g. ``HUFFMAN_TRACE_TREE=true``.
        String fields are taken verbatim, the rest are parsed.
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            key = prefix + f.name.upper()
            if key not in environ:
                continue
            value = environ[key]
            overrides[f.name] = value if f.type is str else _parse_env_value(value)
        return cls(**overrides)


def _parse_env_value(value: str) -> Any:
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


@dataclass(frozen=True)
class EncodedMessage:
    codebook: Mapping
    bits: Tuple[bool, ...]
    length: int
    is_text: bool

    def __post_init__(self):
        # own copies so the caller's dict and list cannot change the result
        object.__setattr__(self, "codebook", MappingProxyType(
            {symbol: tuple(code) for symbol, code in self.codebook.items()}))
        object.__setattr__(self, "bits", tuple(self.bits))

    def __eq__(self, other):
        if not isinstance(other, EncodedMessage):
            return NotImplemented
        return (dict(self.codebook), self.bits, self.length, self.is_text) == \
            (dict(other.codebook), other.bits, other.length, other.is_text)

    def __hash__(self):
        return hash((tuple(self.codebook.items()), self.bits, self.length, self.is_text))

    def bit_string(self) -> str:
        return bits_to_str(self.bits)


def configure_logging(config: HuffmanConfig) -> None:
    """Apply ``config.log_level`` to the codec's module loggers."""
    level = getattr(logging, config.log_level)
    for name in _CODEC_LOGGERS:
        logging.getLogger(name).setLevel(level)


class HuffmanService:
    def __init__(self, config: Optional[HuffmanConfig] = None,
                 on_tree: Optional[Callable[[str], None]] = None):
        self.config = config or HuffmanConfig()
        self.on_tree = on_tree

    def _trace(self):
        if self.on_tree is None and not self.config.trace_tree:
            return None

        def emit(dump):
            if self.config.trace_tree:
                logger.log(getattr(logging, self.config.log_level), "huffman tree:\n%s", dump)
            if self.on_tree is not None:
                self.on_tree(dump)

        return emit

    def encode(self, message) -> Optional[EncodedMessage]:
        symbols = list(message)
        if not symbols:
            logger.debug("nothing to encode")
            return None
        codebook, bits = encode(symbols, trace=self._trace(), indent=self.config.tree_indent)
        logger.debug("encoded %d symbols (%d distinct) into %d bits",
                     len(symbols), len(codebook), len(bits))
        return EncodedMessage(codebook=codebook, bits=tuple(bits), length=len(symbols),
                              is_text=isinstance(message, str))

    def decode(self, encoded: EncodedMessage):
        symbols = decode(encoded.codebook, encoded.bits)
        if encoded.is_text:
            return "".join(symbols)
        return symbols

    def report(self, encoded: EncodedMessage) -> Dict[str, Any]:
        distinct = len(encoded.codebook)
        fixed_width = max(1, math.ceil(math.log2(distinct)))
        total_bits = len(encoded.bits)
        return {
            "symbols": encoded.length,
            "distinct_symbols": distinct,
            "encoded_bits": total_bits,
            "average_code_length": total_bits / encoded.length,
            "fixed_width_bits": fixed_width * encoded.length,
            "codes": {symbol: bits_to_str(code) for symbol, code in encoded.codebook.items()},
        }

    def tree_dump(self, message) -> Optional[str]:
        tree = build_tree(count_frequencies(message))
        if tree is None:
            return None
        return format_tree(tree, indent=self.config.tree_indent)
