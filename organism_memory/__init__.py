"""
Organism memory core: vector store and memory compression.
"""

__version__ = "1.0.0"
