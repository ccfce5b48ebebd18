"""Tests for parsing free-text status reasons."""

import json
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from stackwright.core.exceptions import CloudFormationApiError
from stackwright.stacks.status_reason import (
    AuthorizationFailure,
    CreationCancelled,
    EncodedAuthorizationMessage,
    MissingPermission,
    ResourceErrors,
    parse_status_reason,
)

ENCODED = "g1-YvnBabE1x9q868e9rU4VX9gFjPpt31dEvX6uYDMWmdkou9pGLq85c3Wy4IAr3CwKrF8Jqu0aIkiy0TBM5SU22pSjE"


class TestParseStatusReason:
    """Recognised status reason shapes."""

    def test_creation_cancelled(self):
        assert parse_status_reason("Resource creation cancelled") == CreationCancelled()

    def test_missing_permission_api(self):
        reason = (
            "API: ec2:ModifyVpcAttribute You are not authorized to perform this operation. "
            f"Encoded authorization failure message: {ENCODED}"
        )
        detail = parse_status_reason(reason)

        assert isinstance(detail, MissingPermission)
        assert detail.permission == "ec2:ModifyVpcAttribute"
        assert detail.principal is None
        assert detail.encoded_message == EncodedAuthorizationMessage(ENCODED)

    def test_missing_permission_without_encoded_message(self):
        assert parse_status_reason("API: s3:CreateBucket Access Denied") == MissingPermission(
            permission="s3:CreateBucket"
        )

    def test_missing_permission_with_principal(self):
        reason = (
            'Resource handler returned message: "User: arn:aws:iam::012345678910:user/cfn-testing '
            "is not authorized to perform: elasticfilesystem:CreateFileSystem on the specified resource "
            "(Service: Efs, Status Code: 403, Request ID: fedb2f85-ff52-496c-b7be-207a23072587, "
            'Extended Request ID: null)" (RequestToken: ccd41719-eae9-3614-3b35-1d1cc3ad55da, '
            "HandlerErrorCode: GeneralServiceException)"
        )
        assert parse_status_reason(reason) == MissingPermission(
            permission="elasticfilesystem:CreateFileSystem",
            principal="arn:aws:iam::012345678910:user/cfn-testing",
        )

    def test_authorization_failure(self):
        reason = f"You are not authorized to perform this operation. Encoded authorization failure message: {ENCODED}"
        assert parse_status_reason(reason) == AuthorizationFailure(EncodedAuthorizationMessage(ENCODED))

    def test_resource_errors(self):
        detail = parse_status_reason("The following resource(s) failed to create: [Vpc, Fs]. Rollback requested by user.")

        assert isinstance(detail, ResourceErrors)
        assert detail.logical_resource_ids == ["Vpc", "Fs"]

    @pytest.mark.parametrize("verb", ["create", "update", "delete"])
    def test_resource_errors_for_each_operation(self, verb):
        detail = parse_status_reason(f"The following resource(s) failed to {verb}: [Bucket].")
        assert detail.logical_resource_ids == ["Bucket"]

    @pytest.mark.parametrize("reason", [
        "User Initiated",
        "Resource creation Initiated",
        "",
    ])
    def test_unrecognised_reasons(self, reason):
        assert parse_status_reason(reason) is None


class TestEncodedAuthorizationMessage:
    """Decoding goes through STS only on request."""

    def test_decode(self):
        sts = Mock()
        sts.decode_authorization_message.return_value = {
            'DecodedMessage': json.dumps({"allowed": False, "context": {"action": "ec2:ModifyVpcAttribute"}})
        }

        decoded = EncodedAuthorizationMessage(ENCODED).decode(sts)

        sts.decode_authorization_message.assert_called_once_with(EncodedMessage=ENCODED)
        assert decoded == {"allowed": False, "context": {"action": "ec2:ModifyVpcAttribute"}}

    def test_decode_failure(self):
        sts = Mock()
        sts.decode_authorization_message.side_effect = ClientError(
            {'Error': {'Code': 'AccessDenied', 'Message': 'not allowed to decode'}},
            'DecodeAuthorizationMessage',
        )

        with pytest.raises(CloudFormationApiError) as exc_info:
            EncodedAuthorizationMessage(ENCODED).decode(sts)

        assert exc_info.value.code == 'AccessDenied'
        assert exc_info.value.api_message == 'not allowed to decode'

    def test_parse_does_not_decode(self):
        """Parsing alone never needs credentials."""
        detail = parse_status_reason(f"API: ec2:CreateVpc denied. Encoded authorization failure message: {ENCODED}")
        assert detail.encoded_message.message == ENCODED
