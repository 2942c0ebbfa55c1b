"""
Shared building blocks: errors, category vocabulary, logging setup.
"""
