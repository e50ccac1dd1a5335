"""gitrewind: browse a repository's commit history and rewind the working tree to any commit."""

__version__ = "0.1.0"
