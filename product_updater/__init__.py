"""
Product Updater Client

This package keeps an installed product in sync with its remote
licensing/update server. It verifies license codes, checks for newer
releases, caches server responses and maintains the host's shared
"pending updates" registry so the host can offer an upgrade.
"""

__version__ = "1.1.0"
