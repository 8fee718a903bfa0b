"""
framepipe - configurable batch data-transformation engine.

Frames flow from a reader through filters, validators, transformers and a
mapper into one or more writers, under a named job.
"""

__version__ = "0.1.0"
