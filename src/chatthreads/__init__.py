"""chatthreads: rebuild stable conversation threads from loosely ordered chat messages."""

__version__ = "0.1.0"
