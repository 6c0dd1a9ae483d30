"""AWS Signature Version 4 signing for the Product Advertising API.

``sign_request`` is a pure function: every input, including the clock
reading, is passed in explicitly so identical inputs always produce an
identical ``Authorization`` value.
"""

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional, Union
from urllib.parse import quote

from krolist.scrapers.base import PartnerCredentials

ALGORITHM = "AWS4-HMAC-SHA256"
SERVICE_NAME = "ProductAdvertisingAPI"
SCOPE_TERMINATOR = "aws4_request"
SIGNED_HEADERS = "host;x-amz-date;x-amz-target"


@dataclass(frozen=True)
class SignedHeaders:
    """Values produced by signing one request."""

    authorization: str
    amz_date: str
    payload_hash: str


def format_amz_date(now: datetime) -> str:
    """Compact UTC timestamp, second precision (e.g. ``20261017T093000Z``)."""
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y%m%dT%H%M%SZ")


def canonical_query_string(query: Optional[Mapping[str, str]]) -> str:
    """Sort and URI-encode query parameters for the canonical request."""
    if not query:
        return ""
    return "&".join(
        f"{quote(str(k), safe='-_.~')}={quote(str(v), safe='-_.~')}"
        for k, v in sorted(query.items())
    )


def _hmac_sha256(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(secret_key: str, date_stamp: str, region: str, service: str = SERVICE_NAME) -> bytes:
    """Chain HMACs: secret -> date -> region -> service -> terminator."""
    k_date = _hmac_sha256(f"AWS4{secret_key}".encode("utf-8"), date_stamp)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, service)
    return _hmac_sha256(k_service, SCOPE_TERMINATOR)


def sign_request(
    method: str,
    host: str,
    path: str,
    query: Optional[Mapping[str, str]],
    payload: Union[bytes, str],
    credentials: PartnerCredentials,
    region: str,
    api_target: str,
    now: datetime,
) -> SignedHeaders:
    """Sign a PA-API request and return the Authorization header values.

    Args:
        method: HTTP method (``POST`` for PA-API)
        host: API host, e.g. ``webservices.amazon.sa``
        path: Request path, e.g. ``/paapi5/getitems``
        query: Query parameters (PA-API uses none)
        payload: Exact request body bytes that will be sent
        credentials: Access key and secret key
        region: Signing region, e.g. ``eu-west-1``
        api_target: Value of the ``X-Amz-Target`` header
        now: Signing time

    Returns:
        SignedHeaders with the Authorization value, X-Amz-Date value and
        the hex payload hash
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")

    amz_date = format_amz_date(now)
    date_stamp = amz_date[:8]

    # Step 1: canonical request
    payload_hash = hashlib.sha256(payload).hexdigest()
    canonical_headers = (
        f"host:{host}\n"
        f"x-amz-date:{amz_date}\n"
        f"x-amz-target:{api_target}\n"
    )
    canonical_request = (
        f"{method.upper()}\n"
        f"{path}\n"
        f"{canonical_query_string(query)}\n"
        f"{canonical_headers}\n"
        f"{SIGNED_HEADERS}\n"
        f"{payload_hash}"
    )

    # Step 2: string to sign
    credential_scope = f"{date_stamp}/{region}/{SERVICE_NAME}/{SCOPE_TERMINATOR}"
    canonical_request_hash = hashlib.sha256(canonical_request.encode("utf-8")).hexdigest()
    string_to_sign = (
        f"{ALGORITHM}\n"
        f"{amz_date}\n"
        f"{credential_scope}\n"
        f"{canonical_request_hash}"
    )

    # Step 3: signature
    signing_key = derive_signing_key(credentials.secret_key, date_stamp, region)
    signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    authorization = (
        f"{ALGORITHM} "
        f"Credential={credentials.access_key}/{credential_scope}, "
        f"SignedHeaders={SIGNED_HEADERS}, "
        f"Signature={signature}"
    )

    return SignedHeaders(
        authorization=authorization,
        amz_date=amz_date,
        payload_hash=payload_hash,
    )
