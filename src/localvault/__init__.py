"""LocalVault - encrypted local storage for conversations and documents."""

__version__ = "0.1.0"
