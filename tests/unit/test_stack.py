"""Tests for CloudFormation stack convergence."""

import hashlib
import io
import json
import logging
import random
from datetime import datetime
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import EndpointConnectionError

from stratus.provision.errors import RemoteLookupError, StackProvisionError, UploadError
from stratus.provision.stack import (
    PollPolicy,
    StackDescription,
    StackStatusClass,
    classify_stack_status,
    converge_stack_state,
    log_failed_events,
    stack_capabilities,
    stack_events,
    stack_exists,
)
from stratus.provision.steps import ConvergeStackStep
from stratus.provision.steps.converge import template_key
from stratus.template import Resource, Template

STACK_ID = "arn:aws:cloudformation:us-west-2:123456789012:stack/demo/guid"
TEMPLATE_URL = "https://artifacts.s3.us-west-2.amazonaws.com/demo-abc-cf.json"


def _stack(status: str, outputs: list | None = None) -> dict:
    return {
        "Stacks": [
            {
                "StackId": STACK_ID,
                "StackName": "demo",
                "StackStatus": status,
                "Outputs": outputs or [],
                "CreationTime": datetime(2026, 1, 1),
            }
        ]
    }


class TestClassifyStackStatus:
    @pytest.mark.parametrize("status", ["CREATE_COMPLETE", "UPDATE_COMPLETE"])
    def test_success(self, status):
        assert classify_stack_status(status) is StackStatusClass.SUCCEEDED

    @pytest.mark.parametrize(
        "status",
        [
            "DELETE_COMPLETE",
            "CREATE_FAILED",
            "DELETE_FAILED",
            "ROLLBACK_FAILED",
            "ROLLBACK_COMPLETE",
        ],
    )
    def test_failure(self, status):
        assert classify_stack_status(status) is StackStatusClass.FAILED

    @pytest.mark.parametrize(
        "status",
        ["CREATE_IN_PROGRESS", "UPDATE_IN_PROGRESS", "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS"],
    )
    def test_in_progress(self, status):
        assert classify_stack_status(status) is StackStatusClass.IN_PROGRESS


class TestStackCapabilities:
    def test_no_roles(self):
        template = Template()
        template.add_resource("Fn", Resource(type="AWS::Lambda::Function"))
        assert stack_capabilities(template) == []

    def test_multiple_roles_single_capability(self):
        template = Template()
        template.add_resource("Role1", Resource(type="AWS::IAM::Role"))
        template.add_resource("Role2", Resource(type="AWS::IAM::Role"))
        assert stack_capabilities(template) == ["CAPABILITY_IAM"]


class TestPollPolicy:
    def test_interval_within_bounds(self):
        policy = PollPolicy(rng=random.Random(42))
        for _ in range(100):
            assert 11.0 <= policy.next_interval() <= 24.0

    def test_wait_uses_injected_sleep(self):
        slept = []
        policy = PollPolicy(min_seconds=1.0, max_seconds=1.0, sleep=slept.append)
        assert policy.wait() == 1.0
        assert slept == [1.0]


class TestStackQueries:
    """Tests for stack_exists and stack_events."""

    def test_exists(self):
        cf = MagicMock()
        cf.describe_stacks.return_value = _stack("CREATE_COMPLETE")
        assert stack_exists(cf, "demo") is True

    def test_missing(self, client_error):
        cf = MagicMock()
        cf.describe_stacks.side_effect = client_error(
            "ValidationError", "Stack with id demo does not exist"
        )
        assert stack_exists(cf, "demo") is False

    def test_other_error_raises(self, client_error):
        cf = MagicMock()
        cf.describe_stacks.side_effect = client_error("AccessDenied", "Denied")
        with pytest.raises(RemoteLookupError):
            stack_exists(cf, "demo")

    def test_events_follow_next_token(self):
        cf = MagicMock()
        cf.describe_stack_events.side_effect = [
            {"StackEvents": [{"EventId": "1"}], "NextToken": "page2"},
            {"StackEvents": [{"EventId": "2"}]},
        ]

        events = stack_events(cf, STACK_ID)

        assert [e["EventId"] for e in events] == ["1", "2"]
        assert cf.describe_stack_events.call_args_list[1].kwargs == {
            "StackName": STACK_ID,
            "NextToken": "page2",
        }

    def test_log_failed_events(self, caplog):
        events = [
            {"ResourceStatus": "CREATE_FAILED", "ResourceType": "AWS::Lambda::Function",
             "LogicalResourceId": "Fn", "ResourceStatusReason": "Bad runtime"},
            {"ResourceStatus": "CREATE_COMPLETE", "ResourceType": "AWS::IAM::Role",
             "LogicalResourceId": "Role"},
        ]

        with caplog.at_level(logging.ERROR):
            count = log_failed_events(events)

        assert count == 1
        assert "AWS::Lambda::Function (Fn): Bad runtime" in caplog.text


class TestConvergeStackState:
    """Tests for converge_stack_state."""

    def _role_template(self):
        template = Template()
        template.add_resource("Role", Resource(type="AWS::IAM::Role"))
        return template

    def test_create_then_poll_to_success(self, client_error, no_sleep, log):
        cf = MagicMock()
        cf.describe_stacks.side_effect = [
            client_error("ValidationError", "Stack with id demo does not exist"),
            _stack("CREATE_IN_PROGRESS"),
            _stack("CREATE_COMPLETE", [{"OutputKey": "StratusHome", "OutputValue": "x"}]),
        ]
        cf.create_stack.return_value = {"StackId": STACK_ID}

        stack = converge_stack_state(
            cf, self._role_template(), "demo", TEMPLATE_URL, no_sleep, log
        )

        cf.create_stack.assert_called_once_with(
            StackName="demo",
            TemplateURL=TEMPLATE_URL,
            TimeoutInMinutes=5,
            OnFailure="DELETE",
            Capabilities=["CAPABILITY_IAM"],
        )
        cf.update_stack.assert_not_called()
        assert isinstance(stack, StackDescription)
        assert stack.status == "CREATE_COMPLETE"
        assert stack.output_map() == {"StratusHome": "x"}

    def test_update_existing_stack(self, no_sleep, log):
        cf = MagicMock()
        cf.describe_stacks.side_effect = [
            _stack("CREATE_COMPLETE"),
            _stack("UPDATE_COMPLETE"),
        ]
        cf.update_stack.return_value = {"StackId": STACK_ID}

        stack = converge_stack_state(cf, Template(), "demo", TEMPLATE_URL, no_sleep, log)

        cf.update_stack.assert_called_once_with(
            StackName="demo", TemplateURL=TEMPLATE_URL, Capabilities=[]
        )
        assert stack.status == "UPDATE_COMPLETE"

    def test_update_without_changes(self, client_error, no_sleep, log):
        cf = MagicMock()
        cf.describe_stacks.side_effect = [_stack("UPDATE_COMPLETE"), _stack("UPDATE_COMPLETE")]
        cf.update_stack.side_effect = client_error(
            "ValidationError", "No updates are to be performed."
        )

        stack = converge_stack_state(cf, Template(), "demo", TEMPLATE_URL, no_sleep, log)

        assert stack.status == "UPDATE_COMPLETE"

    def test_failure_logs_events_and_raises(self, client_error, log, caplog):
        cf = MagicMock()
        cf.describe_stacks.side_effect = [
            client_error("ValidationError", "Stack with id demo does not exist"),
            _stack("ROLLBACK_COMPLETE"),
        ]
        cf.create_stack.return_value = {"StackId": STACK_ID}
        cf.describe_stack_events.return_value = {
            "StackEvents": [
                {"ResourceStatus": "CREATE_FAILED", "ResourceType": "AWS::IAM::Role",
                 "LogicalResourceId": "Role", "ResourceStatusReason": "Access denied"},
            ]
        }
        slept = []
        policy = PollPolicy(sleep=slept.append)

        with caplog.at_level(logging.ERROR):
            with pytest.raises(StackProvisionError, match="Failed to provision: demo") as exc_info:
                converge_stack_state(cf, self._role_template(), "demo", TEMPLATE_URL, policy, log)

        assert exc_info.value.stack_id == STACK_ID
        assert len(slept) == 1
        assert 11.0 <= slept[0] <= 24.0
        assert "AWS::IAM::Role (Role): Access denied" in caplog.text

    def test_create_rejected(self, client_error, no_sleep, log):
        cf = MagicMock()
        cf.describe_stacks.side_effect = client_error(
            "ValidationError", "Stack with id demo does not exist"
        )
        cf.create_stack.side_effect = client_error(
            "InsufficientCapabilitiesException", "Requires capabilities"
        )

        with pytest.raises(StackProvisionError, match="Requires capabilities"):
            converge_stack_state(cf, Template(), "demo", TEMPLATE_URL, no_sleep, log)

    def test_create_connection_failure(self, client_error, no_sleep, log):
        cf = MagicMock()
        cf.describe_stacks.side_effect = client_error(
            "ValidationError", "Stack with id demo does not exist"
        )
        cf.create_stack.side_effect = EndpointConnectionError(
            endpoint_url="https://cloudformation.us-west-2.amazonaws.com"
        )

        with pytest.raises(StackProvisionError, match="Failed to converge stack demo"):
            converge_stack_state(cf, Template(), "demo", TEMPLATE_URL, no_sleep, log)

    def test_event_fetch_failure_still_names_service(self, client_error, no_sleep, log, caplog):
        cf = MagicMock()
        cf.describe_stacks.side_effect = [
            client_error("ValidationError", "Stack with id demo does not exist"),
            _stack("ROLLBACK_COMPLETE"),
        ]
        cf.create_stack.return_value = {"StackId": STACK_ID}
        cf.describe_stack_events.side_effect = client_error("Throttling", "Rate exceeded")

        with caplog.at_level(logging.WARNING):
            with pytest.raises(StackProvisionError, match="Failed to provision: demo"):
                converge_stack_state(cf, Template(), "demo", TEMPLATE_URL, no_sleep, log)

        assert "Failed to fetch stack events" in caplog.text
        assert "Rate exceeded" in caplog.text


class TestConvergeStackStep:
    """Tests for ConvergeStackStep."""

    def test_template_key_is_content_addressed(self):
        body = Template(description="Demo").to_json()
        key = template_key("my-demo", body)

        assert key == f"my_demo-{hashlib.sha1(body.encode()).hexdigest()}-cf.json"
        assert template_key("my-demo", body) == key

    def test_noop_writes_template_and_stops(self, make_context, hello_function, session):
        writer = io.StringIO()
        ctx = make_context([hello_function], noop=True, template_writer=writer)
        ctx.template.add_resource("Topic", Resource(type="AWS::SNS::Topic"))

        next_state = ConvergeStackStep(ctx).execute()

        assert next_state is None
        assert ctx.stack is None
        assert json.loads(writer.getvalue()) == ctx.template.to_dict()
        assert len(ctx.rollback) == 1
        session.client.assert_not_called()

    def test_template_upload_failure(self, make_context, hello_function, clients, client_error):
        clients["s3"].put_object.side_effect = client_error("AccessDenied", "Denied")
        ctx = make_context([hello_function])

        with pytest.raises(UploadError, match="-cf.json"):
            ConvergeStackStep(ctx).execute()

        assert len(ctx.rollback) == 0
        assert "cloudformation" not in clients
