"""A small interactive shell with pipelines, redirections, here-documents and builtins."""

__version__ = "0.1.0"
__all__ = [
    "builtins",
    "environment",
    "executor",
    "expansion",
    "linereader",
    "multireader",
    "parser",
    "quoting",
    "shell",
]