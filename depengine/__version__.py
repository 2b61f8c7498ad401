"""depengine version information.

Shown by ``depengine --version`` and sent in the registry ``User-Agent``
header.
"""

__version__ = "0.1.0"
