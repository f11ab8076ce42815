"""
Domain exceptions

LLM errors never leave the services that own them (each service substitutes
fallback data). Wallet and authorization errors are mapped to HTTP status
codes by the API layer.
"""


class LLMError(Exception):
    """Base class for hosted LLM failures"""


class LLMUnavailableError(LLMError):
    """LLM is disabled or no API key is configured"""


class LLMResponseError(LLMError):
    """LLM answered, but not with the JSON shape we asked for"""


class WalletError(Exception):
    """Base class for escrow wallet failures"""


class WalletNotFoundError(WalletError):
    def __init__(self, wallet_id: str):
        super().__init__(f"Wallet not found: {wallet_id}")
        self.wallet_id = wallet_id


class WalletStateError(WalletError):
    """Operation not allowed in the wallet's current status"""


class InsufficientSignaturesError(WalletError):
    def __init__(self, required: int, provided: int):
        super().__init__(
            f"Insufficient signatures. Required: {required}, Provided: {provided}"
        )
        self.required = required
        self.provided = provided


class AuthorizationError(Exception):
    """Base class for authorization failures"""


class ScopeDeniedError(AuthorizationError):
    def __init__(self, scope: str):
        super().__init__(f"Missing required scope: {scope}")
        self.scope = scope
