# upi_gateway/qr.py
import base64
import io

import qrcode
from qrcode.image.pil import PilImage


def render_data_url(payload: str) -> str:
    """Render 'payload' as a PNG QR code and return it as a data URL."""
    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=8, border=4)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(image_factory=PilImage)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()
