"""Content-addressable media store.

Inserted content is fetched from a URL, staged while it is hashed and then
promoted under keys derived from its hash, so identical content is stored
once and near-identical images can be found through perceptual digests.
"""

from .config import MediaStoreConfig, load_config
from .media.media_manager import MediaManager

__all__ = ["MediaManager", "MediaStoreConfig", "load_config"]
