"""
Deployment pipelines
====================

- core: token, treasury, pair templates, factory, router
- pools: trading pairs created through the factory, with optional oracles
"""
