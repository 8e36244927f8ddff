"""
Version information for sturdy-socket.
"""

MAJOR = 1
MINOR = 0
PATCH = 0


def get_version() -> str:
    """Get the version string (``MAJOR.MINOR.PATCH``)."""
    return f"{MAJOR}.{MINOR}.{PATCH}"
