"""Growth AI Engine: pricing, viral content, self-optimization and escrow wallets"""

__version__ = "1.0.0"
