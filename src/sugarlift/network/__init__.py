"""Network clients for Bundlr and Solana."""

from .bundlr import BundlrClient, BundlrError, TransientBundlrError, arweave_link
from .dataitem import DataItemSigner, Tag
from .solana import Cluster, FundsTransfer, Keypair, SolanaCliTransfer

__all__ = [
    "BundlrClient",
    "BundlrError",
    "Cluster",
    "DataItemSigner",
    "FundsTransfer",
    "Keypair",
    "SolanaCliTransfer",
    "Tag",
    "TransientBundlrError",
    "arweave_link",
]
