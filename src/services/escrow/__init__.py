"""
Escrow Service: HTTP API эскроу-движка.
"""
