"""codeassist - AI assistant response pipeline backend"""

__version__ = "1.0.0"
