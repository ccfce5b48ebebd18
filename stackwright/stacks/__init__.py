"""CloudFormation stack orchestration package."""

from .change_set import ChangeSetNegotiator, ChangeSetOutcome, NegotiatedChangeSet
from .client import CloudFormationClient
from .inputs import ApplyStackInput, Capability, DeleteStackInput, Parameter, Tag, TemplateSource
from .models import (
    ApplyStackOutput,
    ChangeSet,
    ResourceStatusEvent,
    StackEvent,
    StackEventDetails,
    StackFailure,
    StackStatusEvent,
    StackWarning,
)
from .operations import ApplyStack, DeleteStack
from .orchestrator import StackOrchestrator
from .status import ChangeSetStatus, ResourceStatus, StackStatus, StatusSentiment
from .status_reason import parse_status_reason
from .tracker import StackEventTracker, StackOperationStatus

__all__ = [
    'ApplyStack',
    'ApplyStackInput',
    'ApplyStackOutput',
    'Capability',
    'ChangeSet',
    'ChangeSetNegotiator',
    'ChangeSetOutcome',
    'ChangeSetStatus',
    'CloudFormationClient',
    'DeleteStack',
    'DeleteStackInput',
    'NegotiatedChangeSet',
    'Parameter',
    'ResourceStatus',
    'ResourceStatusEvent',
    'StackEvent',
    'StackEventDetails',
    'StackEventTracker',
    'StackFailure',
    'StackOperationStatus',
    'StackOrchestrator',
    'StackStatus',
    'StackStatusEvent',
    'StackWarning',
    'StatusSentiment',
    'Tag',
    'TemplateSource',
    'parse_status_reason',
]
