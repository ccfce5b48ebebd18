"""
Input models for stack operations.
"""
import re
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class Capability(str, Enum):
    """Acknowledgements required for templates with certain resources."""

    CAPABILITY_IAM = "CAPABILITY_IAM"
    CAPABILITY_NAMED_IAM = "CAPABILITY_NAMED_IAM"
    CAPABILITY_AUTO_EXPAND = "CAPABILITY_AUTO_EXPAND"

    def __str__(self) -> str:
        return self.value


class Parameter(BaseModel):
    """A template parameter value.

    Values are always given explicitly; previous values are never reused.
    """

    key: str = Field(min_length=1)
    value: str

    def to_api(self) -> Dict[str, str]:
        return {'ParameterKey': self.key, 'ParameterValue': self.value}


class Tag(BaseModel):
    """A stack tag."""

    key: str = Field(min_length=1, max_length=128)
    value: str = Field(max_length=256)

    def to_api(self) -> Dict[str, str]:
        return {'Key': self.key, 'Value': self.value}


class TemplateSource(BaseModel):
    """Where the template comes from: an inline body or an S3 URL, never both."""

    body: Optional[str] = None
    url: Optional[str] = None

    @model_validator(mode='after')
    def check_exactly_one(self) -> 'TemplateSource':
        if (self.body is None) == (self.url is None):
            raise ValueError("Template source needs exactly one of 'body' or 'url'")
        return self

    @classmethod
    def inline(cls, body: str) -> 'TemplateSource':
        return cls(body=body)

    @classmethod
    def s3(cls, url: str) -> 'TemplateSource':
        return cls(url=url)

    def to_api(self) -> Dict[str, str]:
        if self.body is not None:
            return {'TemplateBody': self.body}
        return {'TemplateURL': self.url}


STACK_NAME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9-]{0,127}$')


def _validate_stack_name(v: str) -> str:
    if not STACK_NAME_PATTERN.match(v):
        raise ValueError(
            f"Invalid stack name: {v}. Stack names start with a letter, contain only "
            "alphanumeric characters and hyphens, and are at most 128 characters"
        )
    return v


class ApplyStackInput(BaseModel):
    """Input for creating or updating a stack."""

    stack_name: str = Field(description="Name of the stack to create or update")
    template_source: TemplateSource
    parameters: List[Parameter] = Field(default_factory=list)
    capabilities: List[Capability] = Field(default_factory=list)
    tags: List[Tag] = Field(default_factory=list)
    notification_arns: List[str] = Field(default_factory=list)
    resource_types: Optional[List[str]] = Field(
        default=None, description="Resource types the template is allowed to use"
    )
    role_arn: Optional[str] = Field(
        default=None, description="IAM role CloudFormation assumes for the operation"
    )
    client_request_token: Optional[str] = None
    disable_rollback: bool = False

    @field_validator('stack_name')
    @classmethod
    def validate_stack_name(cls, v: str) -> str:
        return _validate_stack_name(v)

    def change_set_kwargs(self) -> Dict[str, Any]:
        """Arguments for CreateChangeSet shared by the create and update attempts."""
        kwargs: Dict[str, Any] = {
            'StackName': self.stack_name,
            'Parameters': [p.to_api() for p in self.parameters],
            'Capabilities': [c.value for c in self.capabilities],
            'Tags': [t.to_api() for t in self.tags],
            'NotificationARNs': list(self.notification_arns),
            **self.template_source.to_api(),
        }
        if self.resource_types is not None:
            kwargs['ResourceTypes'] = list(self.resource_types)
        if self.role_arn:
            kwargs['RoleARN'] = self.role_arn
        if self.client_request_token:
            kwargs['ClientToken'] = self.client_request_token
        return kwargs


class DeleteStackInput(BaseModel):
    """Input for deleting a stack."""

    stack_name: str = Field(description="Name or ID of the stack to delete")
    client_request_token: Optional[str] = None
    retain_resources: List[str] = Field(default_factory=list)
    role_arn: Optional[str] = None

    @field_validator('stack_name')
    @classmethod
    def validate_stack_name(cls, v: str) -> str:
        # Stack IDs (ARNs) are also accepted
        if v.startswith('arn:'):
            return v
        return _validate_stack_name(v)

    def delete_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {'StackName': self.stack_name}
        if self.retain_resources:
            kwargs['RetainResources'] = list(self.retain_resources)
        if self.role_arn:
            kwargs['RoleARN'] = self.role_arn
        if self.client_request_token:
            kwargs['ClientRequestToken'] = self.client_request_token
        return kwargs
