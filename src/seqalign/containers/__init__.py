"""
Immutable result containers: sequences, alignments, diagonal runs and search hits. Containers hold data only; the
engines that produce them live in ``seqalign.engines``.
"""
