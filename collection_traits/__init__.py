"""Aggregate the traits of every token in an on-chain NFT collection."""
