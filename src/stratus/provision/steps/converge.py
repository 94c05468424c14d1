"""
Step 5: Stack convergence.

Uploads the synthesized template and converges the CloudFormation stack
to it. In noop mode the run ends once the template has been written.
"""

from __future__ import annotations

import hashlib

from botocore.exceptions import BotoCoreError, ClientError

from stratus.aws import create_client
from stratus.naming import sanitized_name

from ..errors import UploadError
from ..stack import converge_stack_state
from ..upload import create_s3_rollback, object_url
from .base import WorkflowState, WorkflowStep


def template_key(service_name: str, template_body: str) -> str:
    """Content-addressed S3 key for a serialized template."""
    digest = hashlib.sha1(template_body.encode("utf-8")).hexdigest()
    return f"{sanitized_name(service_name)}-{digest}-cf.json"


class ConvergeStackStep(WorkflowStep):
    state = WorkflowState.CONVERGE_STACK

    def execute(self) -> WorkflowState | None:
        ctx = self.context
        body = ctx.template.to_json()
        key = template_key(ctx.service_name, body)

        s3 = None
        if ctx.noop:
            self.logger.info(
                f"Bypassing S3 upload of CloudFormation template s3://{ctx.s3_bucket}/{key} (noop)"
            )
        else:
            self.logger.info(f"Uploading CloudFormation template: {key}")
            s3 = create_client(ctx.session, "s3")
            try:
                s3.put_object(
                    Bucket=ctx.s3_bucket,
                    Key=key,
                    Body=body.encode("utf-8"),
                    ContentType="application/json",
                )
            except (ClientError, BotoCoreError) as e:
                raise UploadError(f"Failed to upload CloudFormation template {key}: {e}") from e
        ctx.register_rollback(create_s3_rollback(ctx.session, ctx.s3_bucket, key, ctx.noop, s3))

        if ctx.template_writer is not None:
            ctx.template_writer.write(ctx.template.to_json(indent=4))

        if ctx.noop:
            self.logger.info("Bypassing stack provisioning (noop)")
            return None

        cloudformation = create_client(ctx.session, "cloudformation")
        ctx.stack = converge_stack_state(
            cloudformation,
            ctx.template,
            ctx.service_name,
            object_url(ctx.session, ctx.s3_bucket, key),
            ctx.poll_policy,
            self.logger,
        )
        self.logger.info(f"Stack provisioned: {ctx.stack.stack_id} ({ctx.stack.status})")
        return None
