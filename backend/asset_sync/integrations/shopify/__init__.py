from .shopify_client import ShopifyClient, ManagedFile
from .file_template import bound_filename, render_folder
from .metafields import (
    NAMESPACE, BoundAsset, to_destination_metadata, from_destination_metadata, build_metafields_input,
)
from .errors import ShopifyError, ShopifyRateLimitError, ShopifyTransportError, ShopifyUserError

__all__ = [
    "ShopifyClient", "ManagedFile", "bound_filename", "render_folder",
    "NAMESPACE", "BoundAsset", "to_destination_metadata", "from_destination_metadata", "build_metafields_input",
    "ShopifyError", "ShopifyRateLimitError", "ShopifyTransportError", "ShopifyUserError",
]
