"""Browse and edit the hosts in ~/.ssh/config without losing its formatting."""

__version__ = "0.1.0"
