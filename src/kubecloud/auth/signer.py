"""Presigned STS GetCallerIdentity tokens in the aws-iam-authenticator format.

The token is ``k8s-aws-v1.`` followed by the unpadded base64url encoding of
a SigV4 query-signed ``GetCallerIdentity`` URL. The API server's webhook
authenticator replays that URL against STS to learn the caller's identity,
so any drift in the encoding shows up as a server-side 401.
"""

from __future__ import annotations

import base64
from datetime import timedelta
from typing import Protocol
from urllib.parse import quote

from botocore.auth import SigV4QueryAuth
from botocore.awsrequest import AWSRequest

TOKEN_PREFIX = "k8s-aws-v1."
CLUSTER_ID_HEADER = "x-k8s-aws-id"
STS_SERVICE_NAME = "sts"
STS_API_VERSION = "2011-06-15"
DEFAULT_PRESIGN_EXPIRES = timedelta(minutes=15)

# Characters left unescaped by legacy application/x-www-form-urlencoded encoders.
_FORM_SAFE_CHARS = "~!'()*"


class SigningCredentials(Protocol):
    """Anything exposing the botocore credential triple.

    ``botocore.credentials.ReadOnlyCredentials`` and ``Credentials`` both match.
    """

    access_key: str
    secret_key: str
    token: str | None


def sts_endpoint(region: str) -> str:
    """Return the regional STS endpoint, including the China partition suffix."""
    suffix = "amazonaws.com.cn" if region.startswith("cn-") else "amazonaws.com"
    return f"https://sts.{region}.{suffix}/"


def encode_cluster_id(value: str) -> str:
    """Percent-encode per RFC 3986, keeping ``~ ! ' ( ) *`` literal and spaces as ``%20``."""
    return quote(value, safe=_FORM_SAFE_CHARS)


def encode_token(presigned_url: str, prefix: str = TOKEN_PREFIX) -> str:
    encoded = base64.urlsafe_b64encode(presigned_url.encode("utf-8")).decode("ascii")
    return prefix + encoded.rstrip("=")


def decode_token(token: str, prefix: str = TOKEN_PREFIX) -> str:
    """Recover the presigned URL from a minted token."""
    if not token.startswith(prefix):
        msg = f"Token does not start with {prefix!r}"
        raise ValueError(msg)
    payload = token[len(prefix) :]
    padding = "=" * (-len(payload) % 4)
    return base64.urlsafe_b64decode(payload + padding).decode("utf-8")


class RequestSigner:
    """Builds presigned, region-scoped GetCallerIdentity URLs and bearer tokens.

    The signer is stateless apart from its settings and holds no network
    resources; it is shared by the IAM and OIDC providers.
    """

    def __init__(
        self,
        region: str,
        expires_in: timedelta = DEFAULT_PRESIGN_EXPIRES,
        service_name: str = STS_SERVICE_NAME,
        token_prefix: str = TOKEN_PREFIX,
    ) -> None:
        if expires_in <= timedelta(0):
            msg = f"Presign validity window must be positive, got {expires_in}"
            raise ValueError(msg)
        self._region = region
        self._expires_in = expires_in
        self._service_name = service_name
        self._token_prefix = token_prefix

    @property
    def region(self) -> str:
        return self._region

    def presign_url(self, cluster_name: str, credentials: SigningCredentials) -> str:
        """Return the presigned GetCallerIdentity URL for ``cluster_name``.

        The cluster id is signed as the ``x-k8s-aws-id`` header and then
        appended to the query string, where the webhook authenticator reads it.
        A session token, when present, is carried as ``X-Amz-Security-Token``.
        """
        request = AWSRequest(
            method="GET",
            url=sts_endpoint(self._region),
            params={"Action": "GetCallerIdentity", "Version": STS_API_VERSION},
            headers={CLUSTER_ID_HEADER: cluster_name},
        )
        SigV4QueryAuth(
            credentials,
            self._service_name,
            self._region,
            expires=int(self._expires_in.total_seconds()),
        ).add_auth(request)
        # Note 1: SigV4QueryAuth only signs the header. The authenticator reads the cluster id
        # from the query string, so it is appended after signing without invalidating the URL.
        return f"{request.url}&{CLUSTER_ID_HEADER}={encode_cluster_id(cluster_name)}"

    def generate_token(self, cluster_name: str, credentials: SigningCredentials) -> str:
        return encode_token(self.presign_url(cluster_name, credentials), self._token_prefix)
