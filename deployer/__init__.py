"""
DEX Deployment Scripts
======================

Resumable deployment of the DEX contracts to a CosmWasm chain.

Structure:
- artifacts: per-network deployment record (code ids, addresses)
- config: environment settings and chain configuration
- gateway: signing client for upload / instantiate / execute / query
- executor, pipeline: idempotent steps and their ordered runner
- pipelines/: the core contracts and pool creation
"""

__version__ = "1.0.0"
__author__ = "DEX Protocol Team"
