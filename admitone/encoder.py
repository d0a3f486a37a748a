import base64
from dataclasses import dataclass
from io import BytesIO
from urllib.parse import quote

import qrcode
from qrcode.constants import ERROR_CORRECT_M


@dataclass(frozen=True)
class EncodedTicket:
    payload_url: str
    png: bytes

    @property
    def data_uri(self) -> str:
        return "data:image/png;base64," + base64.b64encode(self.png).decode("ascii")


def checkin_url(ticket_id: str, base_url: str) -> str:
    return f"{base_url.rstrip('/')}/checkin?code={quote(ticket_id, safe='')}"


def render_qr_png(payload: str) -> bytes:
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=2)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image()

    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def encode(ticket_id: str, base_url: str) -> EncodedTicket:
    payload_url = checkin_url(ticket_id, base_url)
    return EncodedTicket(payload_url=payload_url, png=render_qr_png(payload_url))
