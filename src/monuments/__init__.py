"""AI Monument Creator - generate monuments in real scenes and pin them on a map."""

__version__ = "0.1.0"
