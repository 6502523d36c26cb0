"""Per-wallet daily blessing quota derived from NFT ownership."""
