# rewardjar/wallet_pass/generators/pwa.py

"""
Web Card Renderer

Renders the self-contained HTML card served to customers without a wallet
app. All styles are inline and the scannable code is embedded as a data URI,
so the page renders with no further requests.
"""

import base64
import logging
from io import BytesIO

import qrcode
from jinja2 import Environment, PackageLoader, select_autoescape

from ..barcode_placement import barcode_styles
from ..card_data import PassMetadata, WalletPlatform
from ..progress import ProgressModel
from .. import wallet_copy as copy
from .base import BasePassBuilder

logger = logging.getLogger(__name__)

_environment = Environment(
    loader=PackageLoader('rewardjar.wallet_pass', 'templates'),
    autoescape=select_autoescape(['html']),
)


def make_scannable_image(issued_card_id: str) -> str:
    """
    Generate a QR code PNG for the issued card.

    Returns:
        PNG image as a base64 data URI
    """
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(issued_card_id)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format='PNG')
    return f"data:image/png;base64,{base64.b64encode(buffer.getvalue()).decode()}"


class PwaCardRenderer(BasePassBuilder):
    """Renders the HTML fallback card for stamp and membership cards."""

    platform = WalletPlatform.PWA
    template_name = 'pwa/card.html'

    def build(self, progress: ProgressModel, metadata: PassMetadata, scannable_image: str) -> str:
        return self.render(progress, metadata, scannable_image)

    def render(self, progress: ProgressModel, metadata: PassMetadata, scannable_image: str) -> str:
        """
        Render the card markup.

        Args:
            progress: Freshly derived ProgressModel
            metadata: PassMetadata for the card
            scannable_image: Data URI of the card's QR code

        Returns:
            Complete HTML document
        """
        barcode_config = self.barcode_config(progress)
        styles = barcode_styles(barcode_config, self.platform)
        styles['alignment'] = barcode_config.alignment

        html = _environment.get_template(self.template_name).render(
            self.template_data(progress, metadata, scannable_image, styles)
        )
        logger.debug(f"Rendered web card for {metadata.card_name} ({progress.card_kind.value})")
        return html

    def render_for_card(self, progress: ProgressModel, metadata: PassMetadata, issued_card_id: str) -> str:
        """Render the card with a freshly generated QR code for ``issued_card_id``."""
        return self.render(progress, metadata, make_scannable_image(issued_card_id))

    def template_data(self, progress, metadata, scannable_image, barcode) -> dict:
        is_membership = progress.is_membership
        default_hex = copy.MEMBERSHIP_DEFAULT_HEX if is_membership else copy.STAMP_DEFAULT_HEX
        primary_color = copy.hex_to_hex(metadata.brand_color, default_hex)

        if progress.expired:
            status_class = 'expired'
        elif progress.completed:
            status_class = 'completed'
        else:
            status_class = 'active'

        countdown_text, countdown_urgent = copy.pwa_countdown(progress)

        data = self.common_data(progress, metadata)
        data.update({
            'is_membership': is_membership,
            'copy': copy.PWA_MEMBERSHIP if is_membership else copy.PWA_STAMP,
            'icon_emoji': metadata.icon_emoji,
            'primary_color': primary_color,
            'secondary_color': copy.adjust_color_brightness(primary_color, -20),
            'stamps': [i < progress.current for i in range(progress.total)],
            'reward_text': metadata.reward_description or (
                '' if is_membership else copy.PWA_STAMP['reward_fallback']
            ),
            'membership_cost': self._format_cost(metadata.membership_cost) if is_membership else None,
            'expires_on': copy.format_date(progress.expires_at) if progress.expires_at else None,
            'status': copy.status_line(progress),
            'status_class': status_class,
            'countdown_text': countdown_text,
            'countdown_urgent': countdown_urgent,
            'scannable_image': scannable_image,
            'barcode': barcode,
            'footer': copy.PWA_FOOTER,
        })
        return data

    @staticmethod
    def _format_cost(cost):
        if cost is None:
            return None
        return f"{cost:,.0f}"


def render(progress: ProgressModel, metadata: PassMetadata, scannable_image: str) -> str:
    """Render the web card with default settings."""
    return PwaCardRenderer().render(progress, metadata, scannable_image)
