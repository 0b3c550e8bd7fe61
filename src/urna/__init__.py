"""Urna: libro electoral encadenado por hashes.

English:
    Urna: a hash-chained, tamper-evident election ledger.
"""

__version__ = "0.1.0"
