"""
Mnemo - Semantic Memory Companion

Records what a person says, and later brings back the memories most
relevant to a new question so a reply can be grounded in their own past.
"""

__version__ = "1.0.0"
