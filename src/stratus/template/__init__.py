"""CloudFormation template model used by the provisioning workflow."""

from .model import (
    RESOURCE_ATTRIBUTES,
    Output,
    Resource,
    Template,
    TemplateMergeError,
    get_att,
    join,
    outputs_for_resource,
    ref,
    safe_merge_templates,
    safe_metadata_insert,
)

__all__ = [
    "RESOURCE_ATTRIBUTES",
    "Output",
    "Resource",
    "Template",
    "TemplateMergeError",
    "get_att",
    "join",
    "outputs_for_resource",
    "ref",
    "safe_merge_templates",
    "safe_metadata_insert",
]
