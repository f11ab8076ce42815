"""External connectors"""

from app.connectors.solana_rpc import SolanaRPCConnector, SolanaRPCError

__all__ = [
    "SolanaRPCConnector",
    "SolanaRPCError"
]
