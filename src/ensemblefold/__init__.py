"""ensemblefold: RNA secondary structure prediction with ensemble statistics.

The folding recursions are provided by ViennaRNA; this package composes
constraints, drives the engine per record and writes the results.
"""

__version__ = "0.1.0"
