"""
Module containing process-wide resources and the size guard.
"""
from .resources import RESOURCES, SeqAlignWarning, jit
