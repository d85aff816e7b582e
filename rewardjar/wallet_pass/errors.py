# rewardjar/wallet_pass/errors.py

"""
Wallet Pass Errors

Exception taxonomy shared by the pass builders and the update queue processor.
Every error carries the platform and the build step it came from so the
processor can record precise failure information on the queue record.
"""

from typing import Optional, Dict, Any


class WalletPassError(Exception):
    """Base exception for wallet pass generation errors."""

    error_code = 'WALLET_PASS_ERROR'

    def __init__(
        self,
        message: str,
        platform: Optional[str] = None,
        step: Optional[str] = None,
        error_code: str = None
    ):
        super().__init__(message)
        self.message = message
        self.platform = platform
        self.step = step
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            'error_code': self.error_code,
            'message': self.message,
            'platform': self.platform,
            'step': self.step,
        }

    def __str__(self):
        prefix = f"[{self.step}] " if self.step else ''
        return f"{prefix}{self.message}"


class InvalidProgress(WalletPassError):
    """Raised when progress counters are malformed (rejected before any build work)."""
    error_code = 'INVALID_PROGRESS'


class SigningUnavailable(WalletPassError):
    """Raised when a platform's signing credentials are missing or malformed."""
    error_code = 'SIGNING_UNAVAILABLE'


class AssetMissing(WalletPassError):
    """Raised when a required visual asset cannot be located."""
    error_code = 'ASSET_MISSING'


class PlatformValidationFailed(WalletPassError):
    """Raised when a barcode configuration fails platform validation."""
    error_code = 'PLATFORM_VALIDATION_FAILED'

    def __init__(self, message: str, issues=None, **kwargs):
        super().__init__(message, **kwargs)
        self.issues = list(issues or [])

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['issues'] = self.issues
        return data


class QueueRecordTerminal(WalletPassError):
    """Raised when a queue record that is already processed or failed is touched again."""
    error_code = 'QUEUE_RECORD_TERMINAL'

    def __init__(self, record_id, message: str = None):
        super().__init__(message or f"Wallet update {record_id} is already terminal")
        self.record_id = record_id
