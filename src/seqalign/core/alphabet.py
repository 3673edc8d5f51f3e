"""
Module for representing the closed set of biological alphabets (DNA, RNA, protein).
"""
from typing import Union, Final, ClassVar, Optional

import numpy as np

from seqalign.containers.seq import Seq


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class InvalidSequence(Exception):
    """Raised when a sequence is empty, too short, or contains a symbol outside its alphabet."""


class InvalidConfiguration(ValueError):
    """Raised when scoring, seeding, extension or guard parameters are outside their documented bounds."""


# Classes --------------------------------------------------------------------------------------------------------------
class Alphabet:
    """
    A fixed alphabet of ASCII symbols with a lookup table for encoding.

    Only three variants exist (``Alphabet.DNA``, ``Alphabet.RNA`` and ``Alphabet.PROTEIN``). The lookup table of a
    variant is its classification strategy: sequences are checked against it exactly once, when they are encoded into a
    ``Seq``, and never re-classified afterwards.

    Examples:
        >>> seq = Alphabet.DNA.seq('acgt')
        >>> str(seq)
        'ACGT'
        >>> Alphabet.detect('MKV') is Alphabet.PROTEIN
        True
    """
    __slots__ = ('_name', '_data', '_lookup_table', '_complement', '_decode_table')
    DTYPE: Final = np.uint8
    INVALID: Final = np.iinfo(DTYPE).max
    MAX_LEN: Final = INVALID + 1
    ENCODING: Final = 'ascii'
    GAP: Final = '-'

    DNA: ClassVar['Alphabet']
    RNA: ClassVar['Alphabet']
    PROTEIN: ClassVar['Alphabet']

    def __init__(self, name: str, symbols: bytes, complement: bytes = None):
        """
        Initializes an Alphabet.

        Args:
            name: Variant name, used in error messages and ``repr``.
            symbols: The symbols in the alphabet as bytes.
            complement: Optional complement symbols as bytes. Must be same length as symbols.

        Raises:
            ValueError: If symbols are not ASCII, contain duplicates or the gap symbol, or if complement is invalid.
        """
        if not symbols.isascii(): raise ValueError('Alphabet symbols must be a valid ASCII string')
        if len(set(symbols.upper())) != len(symbols): raise ValueError('Alphabet contains duplicate symbols')
        if self.GAP.encode(self.ENCODING) in symbols: raise ValueError('The gap symbol cannot be part of an alphabet')
        self._name = name
        self._data: np.ndarray = np.frombuffer(symbols, dtype=self.DTYPE)

        # Lookup table, both cases map to the same code
        self._lookup_table = np.full(self.MAX_LEN, self.INVALID, dtype=self.DTYPE)
        indices = np.arange(len(symbols), dtype=self.DTYPE)
        self._lookup_table[np.frombuffer(symbols.upper(), dtype=self.DTYPE)] = indices
        self._lookup_table[np.frombuffer(symbols.lower(), dtype=self.DTYPE)] = indices
        self._lookup_table.flags.writeable = False

        decode_map = np.zeros(self.MAX_LEN, dtype=self.DTYPE)
        decode_map[:len(self._data)] = self._data
        self._decode_table = decode_map.tobytes()

        self._complement = None
        if complement is not None:
            if len(complement) != len(symbols): raise ValueError("Complement must be the same length as symbols")
            comp_indices = self._lookup_table[np.frombuffer(complement, dtype=self.DTYPE)]
            if np.any(comp_indices == self.INVALID): raise ValueError("Complement contains symbols not in alphabet")
            self._complement = comp_indices
            self._complement.flags.writeable = False

    def __len__(self): return len(self._data)
    def __iter__(self): return iter(self._data.tobytes().decode(self.ENCODING))
    def __getitem__(self, item): return self._data[item]
    def __repr__(self): return f"Alphabet.{self._name}"
    def __str__(self): return self._name

    def __contains__(self, item):
        if isinstance(item, (int, np.integer)): return 0 <= item < self.MAX_LEN and self._lookup_table[item] != self.INVALID
        if isinstance(item, (str, bytes)):
            if len(item) != 1: return False
            val = ord(item) if isinstance(item, str) else item[0]
            return val < self.MAX_LEN and self._lookup_table[val] != self.INVALID
        return False

    @property
    def name(self) -> str: return self._name
    @property
    def symbols(self) -> str: return self._data.tobytes().decode(self.ENCODING)
    @property
    def complement(self) -> Optional[np.ndarray]: return self._complement

    @property
    def bits_per_symbol(self) -> int:
        """Returns the number of bits required to represent a symbol in this alphabet."""
        return (len(self._data) - 1).bit_length()

    def masker(self, k: int) -> tuple[int, int]:
        """
        Returns (bits_per_symbol, bit_mask) for rolling k-mer hashes of length ``k`` in 64 bits.

        Raises:
            ValueError: If k is not positive or too large for 64-bit hashing.
        """
        bps = self.bits_per_symbol
        if k < 1: raise ValueError(f"K={k} must be a positive integer")
        if k * bps > 64: raise ValueError(f"K={k} is too large for 64-bit hashing with {self} (max {64 // bps})")
        mask = (1 << (bps * (k - 1))) - 1
        return bps, mask

    def code(self, symbol: Union[str, bytes, int]) -> int:
        """
        Returns the integer code of a single symbol.

        Raises:
            InvalidSequence: If the symbol is the gap or is not part of the alphabet.
        """
        if isinstance(symbol, (int, np.integer)):
            if 0 <= symbol < len(self._data): return int(symbol)
            raise InvalidSequence(f"Code {symbol} is out of range for {self}")
        if isinstance(symbol, bytes): symbol = symbol.decode(self.ENCODING, errors='replace')
        if symbol == self.GAP: raise InvalidSequence('Gap symbols are scored through gap penalties, not substitutions')
        if symbol not in self: raise InvalidSequence(f"Symbol {symbol!r} is not valid for {self}")
        return int(self._lookup_table[ord(symbol)])

    def encode(self, text: Union[str, bytes]) -> np.ndarray:
        """
        Encodes text to an array of symbol codes.

        Args:
            text: The sequence as ``str`` or ``bytes``; case is ignored.

        Returns:
            A new ``uint8`` array of codes.

        Raises:
            InvalidSequence: If the text is not ASCII or contains a symbol outside the alphabet.
        """
        if isinstance(text, str):
            try: text = text.encode(self.ENCODING)
            except UnicodeEncodeError as e:
                raise InvalidSequence(f"Non-ASCII symbol {text[e.start]!r} at position {e.start}") from None
        raw = np.frombuffer(text, dtype=self.DTYPE)
        codes = self._lookup_table[raw]
        if (bad := np.flatnonzero(codes == self.INVALID)).size:
            pos = int(bad[0])
            raise InvalidSequence(
                f"Symbol {chr(raw[pos])!r} at position {pos} is not valid for {self} (allowed: {self.symbols})"
            )
        return codes

    def decode(self, encoded: np.ndarray) -> bytes:
        """Decodes an array of codes back to ASCII bytes."""
        return np.asarray(encoded, dtype=self.DTYPE).tobytes().translate(self._decode_table)

    def seq(self, text: Union[str, bytes, Seq]) -> Seq:
        """
        Validates and encodes text into an immutable ``Seq``.

        Args:
            text: The sequence; surrounding whitespace is stripped.

        Returns:
            A ``Seq`` bound to this alphabet.

        Raises:
            InvalidSequence: If the sequence is empty, belongs to another alphabet or has an invalid symbol.

        Examples:
            >>> Alphabet.RNA.seq(b' acgu ')
            ACGU
        """
        if isinstance(text, Seq):
            if text.alphabet is not self: raise InvalidSequence(f"Expected a {self} sequence, got {text.alphabet}")
            return text
        text = text.strip()
        if not text: raise InvalidSequence('Sequence cannot be empty')
        return Seq(self.encode(text), self, _validation_token=self)

    def seq_from(self, encoded: np.ndarray) -> Seq:
        """Wraps an already encoded array (no validation is performed)."""
        return Seq(np.ascontiguousarray(encoded, dtype=self.DTYPE), self, _validation_token=self)

    def reverse_complement(self, encoded: np.ndarray) -> np.ndarray:
        """
        Returns the reverse complement of an encoded array.

        Raises:
            ValueError: If the alphabet has no complement.
        """
        if self._complement is None: raise ValueError(f"{self} has no complement")
        return self._complement[encoded[::-1]]

    @classmethod
    def variants(cls) -> tuple['Alphabet', ...]:
        """Returns the closed set of variants in detection priority order."""
        return cls.DNA, cls.RNA, cls.PROTEIN

    @classmethod
    def detect(cls, text: Union[str, bytes, Seq]) -> 'Alphabet':
        """
        Returns the first variant (DNA, then RNA, then PROTEIN) that accepts every symbol of ``text``.

        Raises:
            InvalidSequence: If the text is empty or no variant accepts it.

        Examples:
            >>> Alphabet.detect('ACGU')
            Alphabet.RNA
        """
        if isinstance(text, Seq): return text.alphabet
        if isinstance(text, str): text = text.encode(cls.ENCODING, errors='replace')
        text = text.strip()
        if not text: raise InvalidSequence('Sequence cannot be empty')
        data = np.frombuffer(text, dtype=cls.DTYPE)
        for alphabet in cls.variants():
            if not np.any(alphabet._lookup_table[data] == cls.INVALID): return alphabet
        raise InvalidSequence(
            'Invalid sequence, use only DNA (ATCG), RNA (AUCG) or protein amino acid symbols'
        )


# Functions ------------------------------------------------------------------------------------------------------------
def validate_pair(seq1: Union[str, bytes, Seq], seq2: Union[str, bytes, Seq]) -> tuple[Seq, Seq]:
    """
    Validates two sequences and checks they belong to the same alphabet.

    Args:
        seq1: First sequence.
        seq2: Second sequence.

    Returns:
        Both sequences encoded with the detected alphabet.

    Raises:
        InvalidSequence: If either sequence is invalid, or the two are of different types.

    Examples:
        >>> validate_pair('ACGU', 'MKV')
        Traceback (most recent call last):
        ...
        seqalign.core.alphabet.InvalidSequence: Sequence types must match. Sequence 1 is RNA, Sequence 2 is PROTEIN
    """
    try: a1 = Alphabet.detect(seq1)
    except InvalidSequence as e: raise InvalidSequence(f"Sequence 1: {e}") from None
    try: a2 = Alphabet.detect(seq2)
    except InvalidSequence as e: raise InvalidSequence(f"Sequence 2: {e}") from None
    if a1 is not a2:
        # A pure ACGT sequence is also valid protein; promote it before giving up
        if a2 is Alphabet.PROTEIN and not isinstance(seq1, Seq) and _accepts(Alphabet.PROTEIN, seq1):
            a1 = a2
        elif a1 is Alphabet.PROTEIN and not isinstance(seq2, Seq) and _accepts(Alphabet.PROTEIN, seq2):
            a2 = a1
        else:
            raise InvalidSequence(f"Sequence types must match. Sequence 1 is {a1}, Sequence 2 is {a2}")
    return a1.seq(seq1), a2.seq(seq2)


def _accepts(alphabet: Alphabet, text: Union[str, bytes]) -> bool:
    try:
        alphabet.encode(text.strip())
        return True
    except InvalidSequence: return False


# Constants ------------------------------------------------------------------------------------------------------------
Alphabet.DNA = Alphabet('DNA', b'TCAG', b'AGTC')
Alphabet.RNA = Alphabet('RNA', b'UCAG', b'AGUC')
Alphabet.PROTEIN = Alphabet('PROTEIN', b'ACDEFGHIKLMNPQRSTVWY')
