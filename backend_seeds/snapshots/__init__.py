"""
Point-in-time NFT ownership snapshots: build, store, serve.

Import from the submodules (models, builder, store, provider, pipeline).
"""
