"""
Data models for change sets, stack events, outputs and operation outcomes.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from ..core.exceptions import InvariantViolation
from .inputs import Capability, Tag
from .status import ChangeSetStatus, ExecutionStatus, ResourceStatus, StackStatus
from .status_reason import StatusReasonDetail, parse_status_reason

NESTED_STACK_RESOURCE_TYPE = "AWS::CloudFormation::Stack"


@dataclass(frozen=True)
class StackEventDetails:
    """Event details common to stack and resource events."""
    event_id: str
    logical_resource_id: str
    physical_resource_id: Optional[str]  # absent for resources not created yet
    resource_type: str
    stack_id: str                       # owning stack, which may be a nested stack
    stack_name: str
    timestamp: datetime
    resource_status_reason: Optional[str] = None
    client_request_token: Optional[str] = None
    stack_alias: Optional[str] = None   # "Parent/Child" path for nested stacks

    def status_reason_detail(self) -> Optional[StatusReasonDetail]:
        """Structured detail parsed from the status reason, if recognised."""
        if self.resource_status_reason is None:
            return None
        return parse_status_reason(self.resource_status_reason)


@dataclass(frozen=True)
class StackEvent:
    """An event emitted by CloudFormation during a stack operation.

    Always one of ``StackStatusEvent`` (about the stack itself) or
    ``ResourceStatusEvent`` (about a resource in the stack).
    """
    details: StackEventDetails

    @property
    def timestamp(self) -> datetime:
        return self.details.timestamp

    @property
    def stack_id(self) -> str:
        return self.details.stack_id

    @staticmethod
    def from_api(event: Dict[str, Any], stack_alias: Optional[str] = None) -> "StackEvent":
        """Build a stack or resource event from a DescribeStackEvents item."""
        details = StackEventDetails(
            event_id=event['EventId'],
            logical_resource_id=event['LogicalResourceId'],
            physical_resource_id=event.get('PhysicalResourceId') or None,
            resource_type=event['ResourceType'],
            stack_id=event['StackId'],
            stack_name=event['StackName'],
            timestamp=event['Timestamp'],
            resource_status_reason=event.get('ResourceStatusReason'),
            client_request_token=event.get('ClientRequestToken'),
            stack_alias=stack_alias,
        )
        if is_stack_event(event):
            return StackStatusEvent(
                details=details,
                resource_status=_parse_enum(StackStatus, event['ResourceStatus'], "Stack event status"),
            )
        return ResourceStatusEvent(
            details=details,
            resource_status=_parse_enum(ResourceStatus, event['ResourceStatus'], "Resource event status"),
        )


@dataclass(frozen=True)
class StackStatusEvent(StackEvent):
    """An event about the stack itself."""
    resource_status: StackStatus = None

    def is_terminal(self) -> bool:
        return self.resource_status.is_settled()


@dataclass(frozen=True)
class ResourceStatusEvent(StackEvent):
    """An event about a resource in the stack (including nested stack resources)."""
    resource_status: ResourceStatus = None

    def is_terminal(self) -> bool:
        return False

    @property
    def nested_stack_id(self) -> Optional[str]:
        """The ID of the nested stack this resource manages, if it is one."""
        if self.details.resource_type != NESTED_STACK_RESOURCE_TYPE:
            return None
        return self.details.physical_resource_id or None


def is_stack_event(event: Dict[str, Any]) -> bool:
    """Whether a raw event describes its own stack rather than a member resource."""
    return (
        event['ResourceType'] == NESTED_STACK_RESOURCE_TYPE
        and event.get('PhysicalResourceId') == event['StackId']
    )


ResourceError = Tuple[ResourceStatus, StackEventDetails]


def _format_resource_errors(resource_events: List[ResourceError]) -> str:
    lines = []
    for resource_status, details in resource_events:
        lines.append(
            f"\n- {details.logical_resource_id} ({details.resource_type}): {resource_status} "
            f"({details.resource_status_reason or 'no reason reported'})"
        )
    return "".join(lines)


@dataclass
class StackFailure:
    """A stack operation that settled with a failed status.

    ``stack_status_reason`` is the *first* reason the stack gave for a negative
    status during the operation, not necessarily the reason attached to
    ``stack_status``. The first one is usually the more descriptive.
    """
    stack_id: str
    stack_status: StackStatus
    stack_status_reason: Optional[str]
    resource_events: List[ResourceError] = field(default_factory=list)

    def status_reason_detail(self) -> Optional[StatusReasonDetail]:
        if self.stack_status_reason is None:
            return None
        return parse_status_reason(self.stack_status_reason)

    def __str__(self) -> str:
        message = (
            f"Stack operation failed for {self.stack_id}; terminal status: {self.stack_status} "
            f"({self.stack_status_reason or 'no reason reported'})"
        )
        if self.resource_events:
            message += "\nThe following resources had errors:"
        return message + _format_resource_errors(self.resource_events)


@dataclass
class StackWarning:
    """A successful stack operation during which some resources had errors.

    For example, failing to delete a replaced resource during clean-up after a
    successful update.
    """
    stack_id: str
    resource_events: List[ResourceError] = field(default_factory=list)

    def __str__(self) -> str:
        message = f"Stack operation for {self.stack_id} succeeded but some resources had errors:"
        return message + _format_resource_errors(self.resource_events)


@dataclass(frozen=True)
class StackOutput:
    """An output declared by the stack's template."""
    key: str
    value: str
    description: Optional[str] = None
    export_name: Optional[str] = None


@dataclass
class ApplyStackOutput:
    """The result of a successful apply."""
    change_set_id: Optional[str]
    creation_time: datetime
    stack_id: str
    stack_name: str
    stack_status: StackStatus
    description: Optional[str] = None
    last_updated_time: Optional[datetime] = None
    outputs: List[StackOutput] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)

    @classmethod
    def from_api(cls, stack: Dict[str, Any]) -> "ApplyStackOutput":
        """Build the output from a DescribeStacks item."""
        return cls(
            change_set_id=stack.get('ChangeSetId'),
            creation_time=stack['CreationTime'],
            stack_id=stack['StackId'],
            stack_name=stack['StackName'],
            stack_status=_parse_enum(StackStatus, stack['StackStatus'], "Stack status"),
            description=stack.get('Description'),
            last_updated_time=stack.get('LastUpdatedTime'),
            outputs=[
                StackOutput(
                    key=output['OutputKey'],
                    value=output['OutputValue'],
                    description=output.get('Description'),
                    export_name=output.get('ExportName'),
                )
                for output in stack.get('Outputs', [])
            ],
            tags=[Tag(key=tag['Key'], value=tag['Value']) for tag in stack.get('Tags', [])],
        )


# Change set descriptions

class ChangeSetType(str, Enum):
    """Whether a change set creates a new stack or updates an existing one."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"

    def __str__(self) -> str:
        return self.value


class ChangeAction(str, Enum):
    ADD = "Add"
    MODIFY = "Modify"
    REMOVE = "Remove"
    IMPORT = "Import"
    DYNAMIC = "Dynamic"


class Replacement(str, Enum):
    """Whether a modification replaces the resource."""

    TRUE = "True"
    FALSE = "False"
    CONDITIONAL = "Conditional"


class ModifyScope(str, Enum):
    PROPERTIES = "Properties"
    METADATA = "Metadata"
    CREATION_POLICY = "CreationPolicy"
    UPDATE_POLICY = "UpdatePolicy"
    DELETION_POLICY = "DeletionPolicy"
    TAGS = "Tags"


class Evaluation(str, Enum):
    """Whether CloudFormation knows the target value now or only at execution."""

    STATIC = "Static"
    DYNAMIC = "Dynamic"


class RequiresRecreation(str, Enum):
    NEVER = "Never"
    CONDITIONALLY = "Conditionally"
    ALWAYS = "Always"


class ChangeSourceKind(str, Enum):
    RESOURCE_REFERENCE = "ResourceReference"
    PARAMETER_REFERENCE = "ParameterReference"
    RESOURCE_ATTRIBUTE = "ResourceAttribute"
    DIRECT_MODIFICATION = "DirectModification"
    AUTOMATIC = "Automatic"


# Sources that name the entity causing the change
_CAUSED_SOURCES = frozenset({
    ChangeSourceKind.RESOURCE_REFERENCE,
    ChangeSourceKind.PARAMETER_REFERENCE,
    ChangeSourceKind.RESOURCE_ATTRIBUTE,
})

# Tag changes on secrets are sometimes reported as conditionally requiring
# recreation, which they don't.
_TAG_RECREATION_EXCEPTIONS = frozenset({"AWS::SecretsManager::Secret"})


def _parse_enum(enum_cls, value: Any, what: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvariantViolation(f"{what} with invalid value {value!r}") from None


def _require(mapping: Dict[str, Any], key: str, what: str) -> Any:
    if mapping.get(key) is None:
        raise InvariantViolation(f"{what} without {key}")
    return mapping[key]


@dataclass(frozen=True)
class ChangeSource:
    """What caused a resource change, and the entity behind it where there is one."""
    kind: ChangeSourceKind
    causing_entity: Optional[str] = None

    @classmethod
    def from_api(cls, change_source: str, causing_entity: Optional[str]) -> "ChangeSource":
        kind = _parse_enum(ChangeSourceKind, change_source, "ResourceChangeDetail change source")
        if kind in _CAUSED_SOURCES and causing_entity is None:
            raise InvariantViolation(
                f"ResourceChangeDetail with change source {kind.value} without CausingEntity"
            )
        return cls(kind=kind, causing_entity=causing_entity if kind in _CAUSED_SOURCES else None)


@dataclass(frozen=True)
class ResourceTargetDefinition:
    """The part of a resource that a change affects.

    ``name`` and ``requires_recreation`` are only set for property changes.
    """
    attribute: ModifyScope
    name: Optional[str] = None
    requires_recreation: Optional[RequiresRecreation] = None

    @classmethod
    def from_api(cls, resource_type: str, target: Dict[str, Any]) -> "ResourceTargetDefinition":
        attribute = _parse_enum(
            ModifyScope, _require(target, 'Attribute', "ResourceTargetDefinition"),
            "ResourceTargetDefinition attribute",
        )
        if attribute is ModifyScope.PROPERTIES:
            return cls(
                attribute=attribute,
                name=_require(target, 'Name', "Properties target"),
                requires_recreation=_parse_enum(
                    RequiresRecreation,
                    _require(target, 'RequiresRecreation', "Properties target"),
                    "Properties target requires recreation",
                ),
            )

        if target.get('Name') is not None:
            raise InvariantViolation(f"{attribute.value} target with Name")
        requires_recreation = target.get('RequiresRecreation')
        if (
            requires_recreation not in (None, RequiresRecreation.NEVER.value)
            and not (attribute is ModifyScope.TAGS and resource_type in _TAG_RECREATION_EXCEPTIONS)
        ):
            raise InvariantViolation(
                f"{attribute.value} target on {resource_type} requires recreation"
            )
        return cls(attribute=attribute)


@dataclass(frozen=True)
class ResourceChangeDetail:
    target: ResourceTargetDefinition
    evaluation: Evaluation
    change_source: Optional[ChangeSource] = None

    @classmethod
    def from_api(cls, resource_type: str, detail: Dict[str, Any]) -> "ResourceChangeDetail":
        change_source = detail.get('ChangeSource')
        return cls(
            target=ResourceTargetDefinition.from_api(
                resource_type, _require(detail, 'Target', "ResourceChangeDetail")
            ),
            evaluation=_parse_enum(
                Evaluation, _require(detail, 'Evaluation', "ResourceChangeDetail"),
                "ResourceChangeDetail evaluation",
            ),
            change_source=(
                ChangeSource.from_api(change_source, detail.get('CausingEntity'))
                if change_source is not None else None
            ),
        )


@dataclass(frozen=True)
class ModifyDetail:
    """How a modified resource changes."""
    replacement: Replacement
    scope: FrozenSet[ModifyScope]
    details: Tuple[ResourceChangeDetail, ...] = ()


@dataclass(frozen=True)
class ResourceChange:
    """A single resource change in a change set.

    ``modify`` is set if and only if ``action`` is ``ChangeAction.MODIFY``.
    """
    action: ChangeAction
    logical_resource_id: str
    resource_type: str
    physical_resource_id: Optional[str] = None
    modify: Optional[ModifyDetail] = None

    @classmethod
    def from_api(cls, change: Dict[str, Any]) -> "ResourceChange":
        """Build a resource change from a DescribeChangeSet ``Changes`` item."""
        if change.get('Type') != 'Resource':
            raise InvariantViolation(f"Change with unexpected type {change.get('Type')!r}")
        resource_change = _require(change, 'ResourceChange', "Change")
        resource_type = _require(resource_change, 'ResourceType', "ResourceChange")
        action = _parse_enum(
            ChangeAction, _require(resource_change, 'Action', "ResourceChange"),
            "ResourceChange action",
        )
        details = resource_change.get('Details') or []
        replacement = resource_change.get('Replacement')
        scope = resource_change.get('Scope') or []

        modify = None
        if action is ChangeAction.MODIFY:
            if replacement is None:
                raise InvariantViolation("Modify ResourceChange without Replacement")
            modify = ModifyDetail(
                replacement=_parse_enum(Replacement, replacement, "ResourceChange replacement"),
                scope=frozenset(
                    _parse_enum(ModifyScope, s, "ResourceChange scope") for s in scope
                ),
                details=tuple(ResourceChangeDetail.from_api(resource_type, d) for d in details),
            )
        elif details or replacement is not None or scope:
            raise InvariantViolation(
                f"ResourceChange with action {action.value} and modification detail"
            )

        return cls(
            action=action,
            logical_resource_id=_require(resource_change, 'LogicalResourceId', "ResourceChange"),
            resource_type=resource_type,
            physical_resource_id=resource_change.get('PhysicalResourceId') or None,
            modify=modify,
        )


@dataclass(frozen=True)
class ChangeSetParameter:
    key: str
    value: Optional[str] = None
    use_previous_value: Optional[bool] = None
    resolved_value: Optional[str] = None


@dataclass
class ChangeSet:
    """A settled change set, as described by CloudFormation."""
    change_set_id: str
    change_set_name: str
    stack_id: str
    stack_name: str
    status: ChangeSetStatus
    execution_status: ExecutionStatus
    creation_time: datetime
    status_reason: Optional[str] = None
    description: Optional[str] = None
    changes: List[ResourceChange] = field(default_factory=list)
    capabilities: List[Capability] = field(default_factory=list)
    notification_arns: List[str] = field(default_factory=list)
    parameters: List[ChangeSetParameter] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)

    @classmethod
    def from_api(cls, description: Dict[str, Any]) -> "ChangeSet":
        """Build a change set from a (fully paginated) DescribeChangeSet response."""
        return cls(
            change_set_id=description['ChangeSetId'],
            change_set_name=description['ChangeSetName'],
            stack_id=description['StackId'],
            stack_name=description['StackName'],
            status=_parse_enum(ChangeSetStatus, description['Status'], "ChangeSet status"),
            execution_status=_parse_enum(ExecutionStatus, description['ExecutionStatus'], "ChangeSet execution status"),
            creation_time=description['CreationTime'],
            status_reason=description.get('StatusReason'),
            description=description.get('Description'),
            changes=[ResourceChange.from_api(c) for c in description.get('Changes', [])],
            capabilities=[
                _parse_enum(Capability, c, "ChangeSet capability")
                for c in description.get('Capabilities', [])
            ],
            notification_arns=list(description.get('NotificationARNs', [])),
            parameters=[
                ChangeSetParameter(
                    key=p['ParameterKey'],
                    value=p.get('ParameterValue'),
                    use_previous_value=p.get('UsePreviousValue'),
                    resolved_value=p.get('ResolvedValue'),
                )
                for p in description.get('Parameters', [])
            ],
            tags=[Tag(key=t['Key'], value=t['Value']) for t in description.get('Tags', [])],
        )
