from __future__ import annotations

import io

import qrcode


def render_terminal_qr(code: str) -> str:
    """Render a pairing code as an ASCII QR block for terminal display."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.ERROR_CORRECT_L,
        box_size=1,
        border=2,
    )
    qr.add_data(code)
    qr.make(fit=True)

    out = io.StringIO()
    qr.print_ascii(out=out, invert=True)
    return out.getvalue()
