"""EKS authentication from ambient or assumed AWS IAM credentials."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import boto3
import structlog
from botocore.credentials import Credentials, ReadOnlyCredentials
from botocore.exceptions import NoCredentialsError

from kubecloud.auth.base import AuthProvider
from kubecloud.auth.cache import Clock
from kubecloud.auth.signer import DEFAULT_PRESIGN_EXPIRES, RequestSigner
from kubecloud.config import DEFAULT_AWS_REGION
from kubecloud.errors import AuthenticationError
from kubecloud.validation import validate_cluster_name, validate_region, validate_role_arn

log = structlog.get_logger()

# Note 1: STS honours a presigned URL for 15 minutes. Caching the token for 14 leaves a
# minute of margin for clock drift between this host and the API server's authenticator.
TOKEN_LIFETIME = timedelta(minutes=14)
DEFAULT_IAM_SESSION_NAME = "kubecloud-iam-session"


class IamAuthProvider(AuthProvider):
    """Mints ``k8s-aws-v1.`` tokens from the caller's AWS credentials.

    Credentials come from, in order: an explicit botocore ``Credentials``
    object, an explicit ``boto3.Session``, or a session built from
    ``profile``/``region`` using the standard AWS credential chain. When
    ``role_arn`` is set the resolved identity first assumes that role, as
    ``aws eks get-token --role-arn`` does.
    """

    name = "iam"

    def __init__(
        self,
        cluster_name: str,
        region: str = DEFAULT_AWS_REGION,
        *,
        credentials: Credentials | None = None,
        session: boto3.Session | None = None,
        profile: str | None = None,
        role_arn: str | None = None,
        role_session_name: str = DEFAULT_IAM_SESSION_NAME,
        presign_expires: timedelta = DEFAULT_PRESIGN_EXPIRES,
        token_lifetime: timedelta = TOKEN_LIFETIME,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(clock)
        self._cluster_name = validate_cluster_name(cluster_name)
        validate_region(region)
        if role_arn is not None:
            validate_role_arn(role_arn)
        self._region = region
        self._credentials = credentials
        self._session = session
        self._profile = profile
        self._role_arn = role_arn
        self._role_session_name = role_session_name
        self._token_lifetime = token_lifetime
        self._signer = RequestSigner(region, expires_in=presign_expires)
        self._sts_client: Any = None

    @property
    def cluster_name(self) -> str:
        return self._cluster_name

    @property
    def region(self) -> str:
        return self._region

    def _get_session(self) -> boto3.Session:
        with self._lock:
            if self._session is None:
                self._session = boto3.Session(profile_name=self._profile, region_name=self._region)
            return self._session

    def _get_sts_client(self, base: ReadOnlyCredentials) -> Any:
        with self._lock:
            if self._sts_client is None:
                client_kwargs: dict[str, Any] = {}
                if self._credentials is not None:
                    client_kwargs = {
                        "aws_access_key_id": base.access_key,
                        "aws_secret_access_key": base.secret_key,
                        "aws_session_token": base.token,
                    }
                self._sts_client = self._get_session().client("sts", region_name=self._region, **client_kwargs)
            return self._sts_client

    def _resolve_credentials(self) -> ReadOnlyCredentials:
        if self._credentials is not None:
            base = self._credentials.get_frozen_credentials()
        else:
            resolved = self._get_session().get_credentials()
            if resolved is None:
                raise NoCredentialsError()
            base = resolved.get_frozen_credentials()

        if self._role_arn is None:
            return base
        return self._assume_role(base)

    def _assume_role(self, base: ReadOnlyCredentials) -> ReadOnlyCredentials:
        response = self._get_sts_client(base).assume_role(
            RoleArn=self._role_arn,
            RoleSessionName=self._role_session_name,
        )
        creds = response["Credentials"]
        log.debug("iam_role_assumed", role_arn=self._role_arn, expires_at=creds.get("Expiration"))
        return ReadOnlyCredentials(creds["AccessKeyId"], creds["SecretAccessKey"], creds["SessionToken"])

    def _fetch_token(self) -> tuple[str, datetime | None]:
        log.debug("generating_iam_token", cluster=self._cluster_name, region=self._region)
        try:
            credentials = self._resolve_credentials()
            token = self._signer.generate_token(self._cluster_name, credentials)
        except Exception as exc:
            log.error("failed_to_generate_iam_token", cluster=self._cluster_name, error=str(exc))
            msg = "Failed to generate IAM authentication token"
            raise AuthenticationError(msg) from exc
        return token, self._clock() + self._token_lifetime

    def _release(self) -> None:
        if self._sts_client is not None:
            self._sts_client.close()
            self._sts_client = None
