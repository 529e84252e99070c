# filename: huffman_core.py

import heapq
import logging
from collections import Counter
from itertools import count
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

Bits = Tuple[bool, ...]
Codebook = Dict[Hashable, Bits]

INDENT = "  "


class HuffmanError(Exception):
    """Base class for errors raised by the Huffman codec."""


class CodebookMismatchError(HuffmanError, ValueError):
    """No codebook entry matches the bits remaining at ``position``."""

    def __init__(self, position, remaining):
        super().__init__(
            f"no matching code at bit {position} ({remaining} bits remaining)"
        )
        self.position = position
        self.remaining = remaining


class HuffmanLeaf:
    is_leaf = True

    def __init__(self, symbol, weight):
        self.symbol = symbol
        self.weight = weight

    def symbols(self):
        return [self.symbol]

    def __repr__(self):
        return f"HuffmanLeaf({self.symbol!r}, {self.weight})"


class HuffmanNode:
    is_leaf = False

    def __init__(self, left, right):
        self.left = left
        self.right = right
        # cached, children are never replaced after the merge
        self.weight = left.weight + right.weight

    def symbols(self):
        symbols = []
        stack = [self]
        while stack:
            node = stack.pop()
            if node.is_leaf:
                symbols.append(node.symbol)
            else:
                stack.append(node.right)
                stack.append(node.left)
        return symbols

    def __repr__(self):
        return f"HuffmanNode(weight={self.weight})"


HuffmanTree = Union[HuffmanLeaf, HuffmanNode]


def count_frequencies(symbols: Iterable[Hashable]) -> Counter:
    return Counter(symbols)


def build_tree(frequencies, trace: Optional[Callable[[str], None]] = None,
               indent: str = INDENT) -> Optional[HuffmanTree]:
    """
    Greedily merge the two lightest trees until a single tree remains.

    Heap entries are ``(weight, sequence, tree)``. Leaves get sequence numbers
    in ascending symbol order and every merged node takes the next free one,
    so equal weights pop in insertion order. The first tree popped becomes
    the left child.

    Returns None for an empty table.
    """
    for symbol, freq in frequencies.items():
        if freq <= 0:
            raise ValueError(f"frequency for {symbol!r} must be positive, got {freq}")

    sequence = count()
    priority_queue = [
        (freq, next(sequence), HuffmanLeaf(symbol, freq))
        for symbol, freq in sorted(frequencies.items())
    ]
    heapq.heapify(priority_queue)

    while len(priority_queue) > 1:
        _, _, left = heapq.heappop(priority_queue)
        _, _, right = heapq.heappop(priority_queue)
        merged = HuffmanNode(left, right)
        heapq.heappush(priority_queue, (merged.weight, next(sequence), merged))

    if not priority_queue:
        logger.debug("empty frequency table, no tree built")
        return None

    tree = priority_queue[0][2]
    logger.debug("built tree over %d symbols, total weight %d", len(frequencies), tree.weight)
    if trace is not None or logger.isEnabledFor(logging.DEBUG):
        dump = format_tree(tree, indent)
        logger.debug("tree:\n%s", dump)
        if trace is not None:
            trace(dump)
    return tree


def derive_codebook(tree: HuffmanTree) -> Codebook:
    # A lone leaf never descends, give it a single 0 bit so it still encodes.
    if tree.is_leaf:
        return {tree.symbol: (False,)}

    codes = {}
    stack = [(tree, ())]
    while stack:
        node, path = stack.pop()
        if node.is_leaf:
            codes[node.symbol] = path
            continue
        stack.append((node.right, path + (True,)))
        stack.append((node.left, path + (False,)))
    return dict(sorted(codes.items()))


def encode(message: Iterable[Hashable], trace: Optional[Callable[[str], None]] = None,
           indent: str = INDENT):
    """
    Huffman-encode ``message`` with a codebook derived from its own frequencies.

    Returns ``(codebook, bits)``, or None when the message is empty.
    """
    symbols = list(message)
    tree = build_tree(count_frequencies(symbols), trace=trace, indent=indent)
    if tree is None:
        return None
    codebook = derive_codebook(tree)

    bits: List[bool] = []
    for symbol in symbols:
        try:
            bits.extend(codebook[symbol])
        except KeyError:
            raise AssertionError(
                f"symbol {symbol!r} missing from its own message's codebook"
            ) from None
    logger.debug("encoded %d symbols into %d bits", len(symbols), len(bits))
    return codebook, bits


def decode(codebook: Codebook, bits: Sequence) -> list:
    """
    Rebuild the message by repeatedly matching a code against the front of
    the remaining bits.

    Codes are tried in ascending symbol order. Prefix-free codebooks admit at
    most one match per position, so the order only affects speed. Empty codes
    never match.

    Raises CodebookMismatchError when no code matches, and TypeError when
    ``bits`` holds anything other than bools or 0/1 ints.
    """
    bits = _as_bits(bits)
    entries = [(symbol, tuple(code)) for symbol, code in sorted(codebook.items()) if code]

    decoded = []
    position = 0
    while position < len(bits):
        for symbol, code in entries:
            if bits[position:position + len(code)] == code:
                decoded.append(symbol)
                position += len(code)
                break
        else:
            logger.warning(
                "decode failed at bit %d of %d: no matching code", position, len(bits)
            )
            raise CodebookMismatchError(position, len(bits) - position)
    return decoded


def _as_bits(bits) -> Bits:
    if isinstance(bits, (str, bytes, bytearray)):
        raise TypeError("bits must be a sequence of bools, use str_to_bits() for '0'/'1' text")
    checked = []
    for i, b in enumerate(bits):
        if not isinstance(b, int) or b not in (0, 1):
            raise TypeError(f"invalid bit {b!r} at index {i}")
        checked.append(bool(b))
    return tuple(checked)


def decode_text(codebook: Codebook, bits: Sequence) -> str:
    return "".join(decode(codebook, bits))


def format_tree(tree: HuffmanTree, indent: str = INDENT) -> str:
    lines = []
    # (node, depth, label); label entries carry no node
    stack = [(tree, 0, None)]
    while stack:
        node, depth, label = stack.pop()
        prefix = indent * depth
        if label is not None:
            lines.append(f"{prefix}{label}")
        elif node.is_leaf:
            lines.append(f"{prefix}{node.symbol}: {node.weight}")
        else:
            lines.append(f"{prefix}left:")
            stack.append((node.right, depth + 1, None))
            stack.append((None, depth, "right:"))
            stack.append((node.left, depth + 1, None))
    return "\n".join(lines)


def bits_to_str(bits: Iterable) -> str:
    return "".join("1" if b else "0" for b in bits)


def str_to_bits(text: str) -> List[bool]:
    bits = []
    for i, ch in enumerate(text):
        if ch not in "01":
            raise ValueError(f"invalid bit character {ch!r} at index {i}")
        bits.append(ch == "1")
    return bits
