"""Immutable, alphabet-aware sequence container."""
from typing import Union

import numpy as np


# Classes --------------------------------------------------------------------------------------------------------------
class Seq:
    """
    Immutable, alphabet-aware sequence container storing encoded integers (uint8).

    ``Seq`` objects should be created via ``Alphabet.seq()`` rather than directly, so that every symbol has been
    validated against the alphabet exactly once.

    Args:
        data: A numpy uint8 array of encoded symbol indices.
        alphabet: The ``Alphabet`` that owns this sequence.
        _validation_token: Internal token (must be the alphabet) to prevent direct construction.

    Examples:
        >>> seq = Alphabet.DNA.seq('ATGCGA')
        >>> len(seq)
        6
        >>> seq[1:4]
        TGC
    """
    __slots__ = ('_data', '_alphabet', '_hash')

    def __init__(self, data: np.ndarray, alphabet: 'Alphabet', _validation_token: object = None):
        if _validation_token is not alphabet:
            raise PermissionError("Seq objects must be created via an Alphabet")
        self._alphabet = alphabet
        self._data = data
        self._hash = None
        self._data.flags.writeable = False

    @property
    def alphabet(self) -> 'Alphabet': return self._alphabet

    @property
    def encoded(self) -> np.ndarray:
        """Returns the underlying read-only ``uint8`` array (zero-copy)."""
        return self._data

    def __array__(self, dtype=None, copy=None): return self._data.astype(dtype, copy=False) if dtype else self._data
    def __bytes__(self) -> bytes: return self._alphabet.decode(self._data)
    def __str__(self): return self.__bytes__().decode('ascii')
    def __len__(self): return self._data.shape[0]
    def __iter__(self): return iter(str(self))

    def __repr__(self):
        if len(self) <= 14: return str(self)
        head = self._alphabet.decode(self._data[:7]).decode('ascii')
        tail = self._alphabet.decode(self._data[-7:]).decode('ascii')
        return f"{head}...{tail}"

    def __getitem__(self, item: Union[int, slice]) -> Union[str, 'Seq']:
        if isinstance(item, slice): return self._alphabet.seq_from(self._data[item])
        return chr(self._alphabet[self._data[item]])

    def __eq__(self, other):
        if self is other: return True
        if isinstance(other, str): return str(self) == other.upper()
        if not isinstance(other, Seq): return NotImplemented
        return self._alphabet is other._alphabet and np.array_equal(self._data, other._data)

    def __hash__(self):
        if self._hash is None: self._hash = hash((self._alphabet.name, self._data.tobytes()))
        return self._hash

    def reverse_complement(self) -> 'Seq':
        """
        Returns the reverse complement (A<->T, C<->G for DNA; A<->U for RNA).

        Raises:
            ValueError: If the alphabet has no complement.

        Examples:
            >>> Alphabet.DNA.seq('AACG').reverse_complement()
            CGTT
        """
        return self._alphabet.seq_from(self._alphabet.reverse_complement(self._data))
