"""finsearch — retrieval-augmented financial question answering."""

__version__ = "0.1.0"
