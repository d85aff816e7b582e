# rewardjar/wallet_pass/wallet_copy.py

"""
Wallet Copy and Display Helpers

Copy strings and small formatting helpers shared by the Apple, Google and
web card builders, so all three platforms show the same wording.
"""

import re
from datetime import datetime
from typing import Optional, Tuple

from .progress import ProgressModel

DEFAULT_EXPIRY_URGENCY_DAYS = 14

STAMP_DEFAULT_COLOR = 'rgb(16, 185, 129)'
MEMBERSHIP_DEFAULT_COLOR = 'rgb(99, 102, 241)'
MEMBERSHIP_EXPIRED_COLOR = 'rgb(239, 68, 68)'
MEMBERSHIP_COMPLETED_COLOR = 'rgb(34, 197, 94)'
FOREGROUND_COLOR = 'rgb(255, 255, 255)'

STAMP_DEFAULT_HEX = '#10b981'
MEMBERSHIP_DEFAULT_HEX = '#6366f1'

APPLE_LABELS = {
    'progress': 'Progress',
    'remaining': 'Remaining',
    'membership_header': 'Membership',
    'stamp_header': 'Stamp Card',
    'business': 'Business',
    'reward': 'Reward',
    'about': 'About',
    'how_to_use': 'How to Use',
    'expires_on': 'Expires on',
    'expires': 'Expires',
    'questions': 'Questions?',
    'sessions_used': 'Sessions Used',
    'stamps_collected': 'Stamps Collected',
}

COMPLETED_MEMBERSHIP = 'Complete'
COMPLETED_STAMP = 'Completed!'

INSTRUCTIONS_MEMBERSHIP = (
    'Show this pass at the gym to mark session usage. '
    'Your pass will automatically update when sessions are used.'
)
INSTRUCTIONS_STAMP = (
    'Show this pass to collect stamps at participating locations. '
    'Your pass will automatically update when new stamps are added.'
)
SUPPORT_TEXT = 'Contact the business directly or visit rewardjar.com for support.'

PWA_STAMP = {
    'page_title': 'Digital Stamp Card',
    'progress_suffix': 'Stamps Collected',
    'reward_fallback': 'Collect all stamps to earn your reward!',
    'qr_text': 'Scan to add stamps or redeem rewards',
}
PWA_MEMBERSHIP = {
    'page_title': 'Digital Membership Card',
    'progress_suffix': 'Sessions Used',
    'qr_text': 'Scan to mark sessions or check membership',
    'expires_on': 'Expires on',
}
PWA_FOOTER = 'Powered by RewardJar - Happy Loyalty Management'

_HEX_COLOR = re.compile(r'^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$', re.IGNORECASE)


def parse_hex_color(hex_color: Optional[str]) -> Optional[Tuple[int, int, int]]:
    if not hex_color:
        return None
    match = _HEX_COLOR.match(hex_color.strip())
    if not match:
        return None
    return tuple(int(part, 16) for part in match.groups())


def hex_to_rgb(hex_color: Optional[str], default: str = STAMP_DEFAULT_COLOR) -> str:
    """Convert '#RRGGBB' to the 'rgb(r, g, b)' notation pass.json expects."""
    rgb = parse_hex_color(hex_color)
    if rgb is None:
        return default
    return f"rgb({rgb[0]}, {rgb[1]}, {rgb[2]})"


def hex_to_hex(hex_color: Optional[str], default: str) -> str:
    """Normalize a brand color to lower-case '#rrggbb', falling back to ``default``."""
    rgb = parse_hex_color(hex_color)
    if rgb is None:
        return default
    return '#{:02x}{:02x}{:02x}'.format(*rgb)


def adjust_color_brightness(hex_color: str, percent: int) -> str:
    """Lighten (positive) or darken (negative) a hex color by a percentage."""
    rgb = parse_hex_color(hex_color) or (0, 0, 0)
    amount = int(round(2.55 * percent))
    shaded = [min(max(channel + amount, 0), 255) for channel in rgb]
    return '#{:02x}{:02x}{:02x}'.format(*shaded)


def background_color(progress: ProgressModel, brand_color: Optional[str]) -> str:
    """
    Pass background color in rgb() notation.

    Memberships switch to a status color once expired or used up.
    """
    if progress.is_membership:
        if progress.expired:
            return MEMBERSHIP_EXPIRED_COLOR
        if progress.completed:
            return MEMBERSHIP_COMPLETED_COLOR
    default = MEMBERSHIP_DEFAULT_COLOR if progress.is_membership else STAMP_DEFAULT_COLOR
    if not brand_color:
        return default
    return hex_to_rgb(brand_color, default=default)


def format_countdown(progress: ProgressModel) -> str:
    if progress.expired:
        return 'Expired'
    days, hours = progress.time_until_expiry()
    if days > 0:
        return f"{days} day{'' if days == 1 else 's'}"
    if hours > 0:
        return f"{hours} hour{'' if hours == 1 else 's'}"
    return 'Soon'


def pwa_countdown(progress: ProgressModel) -> Tuple[str, bool]:
    """
    Countdown banner text and urgency for the web card.

    Returns:
        Tuple of (text, urgent); text is empty when no banner should show
    """
    if progress.expires_at is None:
        return '', False
    if progress.expired:
        return 'Expired', True
    days, hours = progress.time_until_expiry()
    if days == 0:
        if hours > 0:
            return f"{hours} hour{'' if hours == 1 else 's'} left", True
        return 'Soon', True
    if days <= 3:
        return f"{days} day{'' if days == 1 else 's'} left", True
    if days <= 7:
        return f"{days} days left", False
    return '', False


def remaining_text(progress: ProgressModel) -> str:
    if progress.completed:
        return COMPLETED_MEMBERSHIP if progress.is_membership else COMPLETED_STAMP
    unit = 'session' if progress.is_membership else 'stamp'
    return f"{progress.remaining} {unit}{'' if progress.remaining == 1 else 's'}"


def status_line(progress: ProgressModel) -> str:
    """One-line progress status shared by the Google text modules and the web card."""
    if progress.expired:
        return 'Membership expired' if progress.is_membership else 'Card expired'
    if progress.completed:
        return COMPLETED_MEMBERSHIP if progress.is_membership else COMPLETED_STAMP
    return f"{remaining_text(progress)} remaining"


def format_date(value: datetime) -> str:
    return value.strftime('%b %d, %Y')
