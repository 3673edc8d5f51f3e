"""
Resource and optional dependency management shared by the engines.
"""
from functools import cached_property, lru_cache
from importlib import import_module
from concurrent.futures import ThreadPoolExecutor
import atexit
import os
from typing import Callable


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class SeqAlignWarning(Warning):
    """Root of the seqalign warning hierarchy."""


# Classes --------------------------------------------------------------------------------------------------------------
class Resources:
    """
    Process-wide state used by the alignment engines.

    Holds the lazily created worker pool that fans out seed extension, and answers whether an optional accelerator
    such as numba can be imported. The pool is shut down when the interpreter exits.
    """
    def __init__(self) -> None:
        atexit.register(self._cleanup)

    @cached_property
    def available_cpus(self) -> int:
        """CPUs this process may run on (falls back to the machine count before Python 3.13)."""
        try: return os.process_cpu_count()
        except AttributeError: return os.cpu_count()

    @cached_property
    def pool(self) -> ThreadPoolExecutor:
        """Thread pool for extending many seeds at once; built the first time it is asked for."""
        return ThreadPoolExecutor(min(32, (self.available_cpus or 1) + 4))

    def _cleanup(self):
        # Never built unless something used it
        if 'pool' in self.__dict__: self.pool.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    @lru_cache(maxsize=None)
    def has_module(module_name: str) -> bool:
        """Whether ``module_name`` imports cleanly; the answer is cached per name."""
        try:
            import_module(module_name)
            return True
        except ImportError: return False

    def __enter__(self): return self
    def __exit__(self, exc_type, exc_val, exc_tb): self._cleanup()


# Decorators -----------------------------------------------------------------------------------------------------------
def jit(signature_or_function=None, **options) -> Callable:
    """
    Compiles a DP or hashing kernel with numba when it is installed.

    Without numba the kernel is returned untouched and the options are ignored, so every kernel must also run as
    plain Python over numpy arrays.

    Examples:
        >>> @jit
        ... def kernel(): ...

        >>> @jit(nopython=True, cache=True, nogil=True)
        ... def kernel(): ...
    """
    bare = callable(signature_or_function)
    if not RESOURCES.has_module('numba'):
        if bare: return signature_or_function
        def unchanged(func: Callable) -> Callable: return func
        return unchanged
    from numba import jit as numba_jit
    if bare: return numba_jit(signature_or_function)
    return numba_jit(signature_or_function, **options)


# Constants ------------------------------------------------------------------------------------------------------------
RESOURCES = Resources()
