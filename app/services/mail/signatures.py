from typing import Dict

DEFAULT_SIGNATURE_KEY = "default"


class SignatureService:
    """Plain-text signature per account, with a default fallback"""

    def __init__(self, signatures: Dict[str, str]):
        self.signatures = signatures

    def get(self, account_id: str) -> str:
        signature = self.signatures.get(account_id)
        if signature is None:
            signature = self.signatures.get(DEFAULT_SIGNATURE_KEY, "")
        return signature
