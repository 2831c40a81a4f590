"""packrelay: deterministic resource pack bundling and publishing.

Bundles a resource pack directory into a reproducible ZIP, fingerprints it
with a streaming SHA-1, and rewrites ``resource-pack`` and
``resource-pack-sha1`` in the game server's ``server.properties`` so clients
re-download the pack when its content changes.
"""

__version__ = "0.1.0"
__description__ = "Deterministic resource pack bundling and server publishing"

from packrelay.core.reconciler import Reconciler
from packrelay.cli.app import app as cli

__all__ = ["Reconciler", "cli", "__version__"]
