"""docloom: structural comment placement for source code."""

__version__ = "0.1.0"
