"""Wallet session coordination: transport contract, bounded requests, orchestration."""
