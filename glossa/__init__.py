"""
Glossa: glossary-consistent LLM translation of e-books
"""

__version__ = "1.0.0"
