from io import BytesIO
import qrcode
from freshdock.core.config import settings


# Brand colours used on printed paperwork
QR_FILL = "#22573c"
QR_BACK = "#f0f8f3"


def dispatch_status_url(qr_code_token: str) -> str:
    """Public page a scanned delivery advice opens."""
    return f"{settings.app_url}/dispatch/scan/{qr_code_token}"


def generate_qr_png(data: str, box_size: int = 10) -> bytes:
    """
    Generates a QR code for the given data and returns it as PNG bytes.
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=1,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color=QR_FILL, back_color=QR_BACK)

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
