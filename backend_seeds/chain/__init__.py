"""
Chain adapters: JSON-RPC transport and typed contract reads.

The only suspension points of the core live here; everything above consumes
decoded dataclasses.
"""
