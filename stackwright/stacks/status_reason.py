"""
Best-effort structured detail from free-text status reasons.

CloudFormation reports why a stack or resource reached a status as free text.
A few common shapes are recognised here; anything else parses to ``None``.
The parse is never authoritative, it only helps present failures.
"""
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from botocore.exceptions import BotoCoreError, ClientError

from ..core.exceptions import CloudFormationApiError

CREATION_CANCELLED = re.compile(r'Resource creation cancelled', re.IGNORECASE)
MISSING_PERMISSION_1 = re.compile(
    r'API: (?P<permission>[a-z0-9]+:[a-z0-9]+)\b', re.IGNORECASE
)
MISSING_PERMISSION_2 = re.compile(
    r'User: (?P<principal>[a-z0-9:/-]+) is not authorized to perform: '
    r'(?P<permission>[a-z0-9]+:[a-z0-9]+)',
    re.IGNORECASE,
)
AUTHORIZATION_FAILURE = re.compile(
    r'Encoded authorization failure message: (?P<message>[a-z0-9_-]+)', re.IGNORECASE
)
RESOURCE_ERRORS = re.compile(
    r'The following resource\(s\) failed to (?:create|delete|update): '
    r'\[(?P<logical_resource_ids>[a-z0-9]+(?:, *[a-z0-9]+)*)\]',
    re.IGNORECASE,
)
LOGICAL_RESOURCE_ID = re.compile(r'[a-z0-9]+', re.IGNORECASE)


@dataclass(frozen=True)
class EncodedAuthorizationMessage:
    """An opaque authorization failure message.

    Decoding needs a call to STS (and the ``sts:DecodeAuthorizationMessage``
    permission), so it only happens on request.
    """
    message: str

    def decode(self, sts) -> Dict[str, Any]:
        """Decode the message with STS.

        Args:
            sts: A boto3 STS client

        Returns:
            The decoded authorization context

        Raises:
            CloudFormationApiError: If the STS call fails
        """
        try:
            response = sts.decode_authorization_message(EncodedMessage=self.message)
        except ClientError as e:
            error = e.response.get('Error', {})
            raise CloudFormationApiError(
                'DecodeAuthorizationMessage', error.get('Message', str(e)), error.get('Code'), e
            ) from e
        except BotoCoreError as e:
            raise CloudFormationApiError('DecodeAuthorizationMessage', str(e), error=e) from e
        return json.loads(response['DecodedMessage'])


@dataclass(frozen=True)
class CreationCancelled:
    """The resource was not created because another resource failed."""


@dataclass(frozen=True)
class MissingPermission:
    """The operation was denied for lack of an IAM permission."""
    permission: str
    principal: Optional[str] = None
    encoded_message: Optional[EncodedAuthorizationMessage] = None


@dataclass(frozen=True)
class AuthorizationFailure:
    """An authorization failure that only an encoded message explains."""
    encoded_message: EncodedAuthorizationMessage


@dataclass(frozen=True)
class ResourceErrors:
    """A stack reporting which of its resources failed."""
    raw_ids: str

    @property
    def logical_resource_ids(self) -> List[str]:
        return LOGICAL_RESOURCE_ID.findall(self.raw_ids)


StatusReasonDetail = Union[CreationCancelled, MissingPermission, AuthorizationFailure, ResourceErrors]


def _encoded_message(status_reason: str) -> Optional[EncodedAuthorizationMessage]:
    match = AUTHORIZATION_FAILURE.search(status_reason)
    if match is None:
        return None
    return EncodedAuthorizationMessage(match.group('message'))


def parse_status_reason(status_reason: str) -> Optional[StatusReasonDetail]:
    """Parse a status reason into a recognised detail.

    Args:
        status_reason: Free-text reason from a stack or resource event

    Returns:
        The first matching detail, or None if the text isn't recognised
    """
    if CREATION_CANCELLED.search(status_reason):
        return CreationCancelled()

    match = MISSING_PERMISSION_1.search(status_reason)
    if match:
        return MissingPermission(
            permission=match.group('permission'),
            encoded_message=_encoded_message(status_reason),
        )

    match = MISSING_PERMISSION_2.search(status_reason)
    if match:
        return MissingPermission(
            permission=match.group('permission'),
            principal=match.group('principal'),
            encoded_message=_encoded_message(status_reason),
        )

    encoded = _encoded_message(status_reason)
    if encoded is not None:
        return AuthorizationFailure(encoded)

    match = RESOURCE_ERRORS.search(status_reason)
    if match:
        return ResourceErrors(match.group('logical_resource_ids'))

    return None
