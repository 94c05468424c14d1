"""
Step 4: Template synthesis.

Exports every service descriptor into the run's template.
"""

from __future__ import annotations

import logging

from stratus._version import STRATUS_HOME, __version__
from stratus.template import (
    Output,
    Template,
    TemplateMergeError,
    outputs_for_resource,
    ref,
    safe_merge_templates,
    safe_metadata_insert,
)

from ..errors import ExportError
from .base import WorkflowState, WorkflowStep

logger = logging.getLogger(__name__)

OUTPUT_STRATUS_HOME = "StratusHome"
OUTPUT_STRATUS_VERSION = "StratusVersion"
LAMBDA_FUNCTION_TYPE = "AWS::Lambda::Function"

# Pseudo parameters every function can discover from its own metadata.
STACK_METADATA = {
    "stratus:region": "AWS::Region",
    "stratus:id": "AWS::StackId",
    "stratus:name": "AWS::StackName",
}


def inject_dependency_metadata(template: Template, log: logging.Logger | None = None) -> None:
    """
    Annotate each Lambda function with the outputs of the resources it
    depends on, plus references to the stack's own pseudo parameters.

    Existing metadata keys are never overwritten.
    """
    log = log or logger
    for logical_id, resource in template.resources_of_type(LAMBDA_FUNCTION_TYPE).items():
        for dependency in resource.depends_on:
            outputs = outputs_for_resource(template, dependency)
            if outputs is None:
                continue
            if safe_metadata_insert(resource, dependency, outputs):
                log.debug(f"Added {dependency} outputs to {logical_id} metadata")

        for key, pseudo_parameter in STACK_METADATA.items():
            safe_metadata_insert(resource, key, ref(pseudo_parameter))


class ExportResourcesStep(WorkflowStep):
    """Builds the complete template from functions, API and site."""

    state = WorkflowState.EXPORT_RESOURCES

    def execute(self) -> WorkflowState | None:
        ctx = self.context
        self.logger.info(f"Exporting resources for {ctx.service_name}")

        for function in ctx.lambda_functions:
            function.export(
                ctx.service_name,
                ctx.s3_bucket,
                ctx.code_key,
                ctx.role_map,
                ctx.template,
                self.logger,
            )

        api_template = Template()
        if ctx.api is not None:
            try:
                ctx.api.export(ctx.s3_bucket, ctx.code_key, ctx.role_map, api_template, self.logger)
                safe_merge_templates(api_template, ctx.template)
            except (TemplateMergeError, KeyError, ValueError) as e:
                raise ExportError(f"Failed to export API {ctx.api.name}: {e}") from e

        site = ctx.site_context.site
        if site is not None:
            site.export(
                ctx.s3_bucket,
                ctx.code_key,
                ctx.site_context.archive_key,
                api_template.outputs,
                ctx.template,
                self.logger,
            )

        ctx.template.outputs[OUTPUT_STRATUS_HOME] = Output(
            description="Stratus Home", value=STRATUS_HOME
        )
        ctx.template.outputs[OUTPUT_STRATUS_VERSION] = Output(
            description="Stratus Version", value=__version__
        )

        inject_dependency_metadata(ctx.template, self.logger)
        self.logger.info(
            f"Template contains {len(ctx.template.resources)} resources "
            f"and {len(ctx.template.outputs)} outputs"
        )
        return WorkflowState.CONVERGE_STACK
