"""Tests for presigned GetCallerIdentity token generation."""

from __future__ import annotations

from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

import pytest
from botocore.credentials import ReadOnlyCredentials

from kubecloud.auth.signer import (
    TOKEN_PREFIX,
    RequestSigner,
    decode_token,
    encode_cluster_id,
    encode_token,
    sts_endpoint,
)

LONG_LIVED = ReadOnlyCredentials("AKIAEXAMPLE", "secret-example", None)
SESSION = ReadOnlyCredentials("ASIAEXAMPLE", "secret-example", "session-token-example")


def _query(token: str) -> dict[str, list[str]]:
    return parse_qs(urlsplit(decode_token(token)).query)


class TestGenerateToken:
    def test_token_format(self) -> None:
        token = RequestSigner("us-east-1").generate_token("my-cluster", LONG_LIVED)
        assert token.startswith(TOKEN_PREFIX)
        payload = token[len(TOKEN_PREFIX) :]
        assert "=" not in payload
        assert "+" not in payload
        assert "/" not in payload

    def test_decoded_url_targets_regional_sts(self) -> None:
        token = RequestSigner("eu-west-1").generate_token("my-cluster", LONG_LIVED)
        url = urlsplit(decode_token(token))
        assert url.scheme == "https"
        assert url.netloc == "sts.eu-west-1.amazonaws.com"

    def test_decoded_url_carries_signed_query(self) -> None:
        query = _query(RequestSigner("us-east-1").generate_token("my-cluster", LONG_LIVED))
        assert query["Action"] == ["GetCallerIdentity"]
        assert query["Version"] == ["2011-06-15"]
        assert query["x-k8s-aws-id"] == ["my-cluster"]
        assert query["X-Amz-Algorithm"] == ["AWS4-HMAC-SHA256"]
        assert query["X-Amz-Expires"] == ["900"]
        assert "x-k8s-aws-id" in query["X-Amz-SignedHeaders"][0]
        assert query["X-Amz-Credential"][0].startswith("AKIAEXAMPLE/")
        assert "/us-east-1/sts/aws4_request" in query["X-Amz-Credential"][0]
        assert "X-Amz-Signature" in query

    def test_long_lived_keys_omit_security_token(self) -> None:
        query = _query(RequestSigner("us-east-1").generate_token("my-cluster", LONG_LIVED))
        assert "X-Amz-Security-Token" not in query

    def test_session_credentials_include_security_token(self) -> None:
        query = _query(RequestSigner("us-east-1").generate_token("my-cluster", SESSION))
        assert query["X-Amz-Security-Token"] == ["session-token-example"]

    def test_custom_presign_window(self) -> None:
        signer = RequestSigner("us-east-1", expires_in=timedelta(minutes=5))
        query = _query(signer.generate_token("my-cluster", LONG_LIVED))
        assert query["X-Amz-Expires"] == ["300"]

    def test_non_positive_window_rejected(self) -> None:
        with pytest.raises(ValueError, match="positive"):
            RequestSigner("us-east-1", expires_in=timedelta(0))

    def test_cluster_id_with_special_characters(self) -> None:
        url = RequestSigner("us-east-1").presign_url("team a/(dev)*", LONG_LIVED)
        assert url.endswith("&x-k8s-aws-id=team%20a%2F(dev)*")


class TestEncoding:
    def test_encode_cluster_id_keeps_form_safe_characters(self) -> None:
        assert encode_cluster_id("a~b!c'd(e)f*g") == "a~b!c'd(e)f*g"

    def test_encode_cluster_id_escapes_space_as_percent_20(self) -> None:
        assert encode_cluster_id("my cluster") == "my%20cluster"

    def test_token_round_trip(self) -> None:
        url = "https://sts.us-east-1.amazonaws.com/?Action=GetCallerIdentity&x=1"
        assert decode_token(encode_token(url)) == url

    def test_decode_rejects_wrong_prefix(self) -> None:
        with pytest.raises(ValueError, match="does not start with"):
            decode_token("k8s-aws-v2.abc")

    def test_china_partition_endpoint(self) -> None:
        assert sts_endpoint("cn-north-1") == "https://sts.cn-north-1.amazonaws.com.cn/"
