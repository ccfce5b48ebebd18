"""
Thin CloudFormation client over boto3.

Every call converts botocore failures into ``CloudFormationApiError``. No
retries happen here beyond botocore's own transport retries.
"""
import logging
from typing import Any, Dict, Iterator, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..core.exceptions import CloudFormationApiError
from .api_messages import is_not_exists
from .status_reason import EncodedAuthorizationMessage


logger = logging.getLogger(__name__)


def _api_error(operation: str, error: Exception) -> CloudFormationApiError:
    if isinstance(error, ClientError):
        details = error.response.get('Error', {})
        return CloudFormationApiError(
            operation, details.get('Message', str(error)), details.get('Code'), error
        )
    return CloudFormationApiError(operation, str(error), error=error)


class CloudFormationClient:
    """CloudFormation operations used by the stack orchestration engine."""

    def __init__(self, session: boto3.Session, region: Optional[str] = None):
        """Initialize the client with an AWS session and region.

        Args:
            session: Authenticated boto3 session
            region: AWS region to operate in. If None, uses the session's region.
        """
        self.session = session
        self.region = region or session.region_name or 'us-east-1'
        self._client = None
        self._sts = None

    @property
    def client(self):
        """Lazy-loaded CloudFormation client."""
        if self._client is None:
            self._client = self.session.client('cloudformation', region_name=self.region)
        return self._client

    @property
    def sts(self):
        """Lazy-loaded STS client, used to decode authorization failures."""
        if self._sts is None:
            self._sts = self.session.client('sts', region_name=self.region)
        return self._sts

    def _call(self, operation: str, method: str, **kwargs) -> Dict[str, Any]:
        try:
            return getattr(self.client, method)(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise _api_error(operation, e) from e

    def create_change_set(self, change_set_name: str, change_set_type: str, **kwargs) -> str:
        """Create a change set.

        Args:
            change_set_name: Name of the change set, unique within the stack
            change_set_type: 'CREATE' or 'UPDATE'
            **kwargs: Remaining CreateChangeSet arguments (StackName, template, ...)

        Returns:
            The change set ID

        Raises:
            CloudFormationApiError: If the call fails
        """
        response = self._call(
            'CreateChangeSet', 'create_change_set',
            ChangeSetName=change_set_name, ChangeSetType=change_set_type, **kwargs
        )
        return response['Id']

    def describe_change_set(self, change_set_id: str) -> Dict[str, Any]:
        """Describe a change set, following pagination of its changes.

        Returns:
            The DescribeChangeSet response with all ``Changes`` concatenated
        """
        response = self._call('DescribeChangeSet', 'describe_change_set', ChangeSetName=change_set_id)
        changes: List[Dict[str, Any]] = list(response.get('Changes', []))
        next_token = response.get('NextToken')
        while next_token:
            page = self._call(
                'DescribeChangeSet', 'describe_change_set',
                ChangeSetName=change_set_id, NextToken=next_token
            )
            changes.extend(page.get('Changes', []))
            next_token = page.get('NextToken')
        response = dict(response)
        response['Changes'] = changes
        response.pop('NextToken', None)
        return response

    def execute_change_set(self, change_set_id: str, disable_rollback: bool = False) -> None:
        self._call(
            'ExecuteChangeSet', 'execute_change_set',
            ChangeSetName=change_set_id, DisableRollback=disable_rollback
        )

    def describe_stack(self, stack_name: str) -> Optional[Dict[str, Any]]:
        """Describe a single stack.

        Args:
            stack_name: Stack name or ID

        Returns:
            The stack description, or None if the stack does not exist

        Raises:
            CloudFormationApiError: If the call fails for any other reason
        """
        try:
            response = self.client.describe_stacks(StackName=stack_name)
        except ClientError as e:
            if is_not_exists(e.response.get('Error', {}).get('Message')):
                return None
            raise _api_error('DescribeStacks', e) from e
        except BotoCoreError as e:
            raise _api_error('DescribeStacks', e) from e

        stacks = response.get('Stacks', [])
        return stacks[0] if stacks else None

    def delete_stack(self, stack_name: str, **kwargs) -> None:
        self._call('DeleteStack', 'delete_stack', StackName=stack_name, **kwargs)

    def describe_stack_events(self, stack_id: str) -> Iterator[List[Dict[str, Any]]]:
        """Lazily iterate pages of stack events, newest first.

        Pages are fetched on demand, so callers can stop once they reach events
        they've already seen.

        Raises:
            CloudFormationApiError: If fetching a page fails
        """
        next_token = None
        while True:
            kwargs = {'StackName': stack_id}
            if next_token:
                kwargs['NextToken'] = next_token
            page = self._call('DescribeStackEvents', 'describe_stack_events', **kwargs)
            yield page.get('StackEvents', [])
            next_token = page.get('NextToken')
            if not next_token:
                return

    def decode_authorization_message(self, message: str) -> Dict[str, Any]:
        """Decode an encoded authorization failure message with STS."""
        return EncodedAuthorizationMessage(message).decode(self.sts)
