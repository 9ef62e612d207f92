"""
Configuration, errors, eviction ordering and memory compression.
"""
