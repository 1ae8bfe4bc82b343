import pytest
from datetime import datetime

from core.exceptions import ReplicationError
from core.models.build_resource import BuildResource, BuildResourceState
from core.models.image import BuiltImage, ImageRef, ImageState, SourceImage, parse_artifact_id
from core.models.replication import CopyOutcome, CopyTask, ReplicationResult
from core.models.workflow import PhaseStatus, WorkflowPhase, WorkflowResult, WorkflowStatus
from fakes import ami_record, appstream_image_record, builder_record


def make_task(account_id="222222222222", **kwargs) -> CopyTask:
    source = SourceImage(image_id="ami-1", region="us-east-1", tags={"Name": "golden"})
    return CopyTask(source_image=source, target_account_id=account_id,
                    target_region="us-east-1", client=None, **kwargs)


class TestBuildResource:
    """Test cases for BuildResource model."""

    def test_from_description(self):
        """Test parsing an image builder record."""
        resource = BuildResource.from_description(builder_record("b-1", "RUNNING", ip="10.0.0.5"))

        assert resource.name == "b-1"
        assert resource.state == BuildResourceState.RUNNING
        assert resource.is_running
        assert resource.address == "10.0.0.5"
        assert resource.instance_type == "stream.standard.medium"

    @pytest.mark.parametrize("raw,deletable,transitioning", [
        ("STOPPED", True, False),
        ("FAILED", True, False),
        ("PENDING", False, True),
        ("STOPPING", False, True),
        ("SNAPSHOTTING", False, True),
        ("RUNNING", False, False),
    ])
    def test_state_properties(self, raw, deletable, transitioning):
        resource = BuildResource.from_description(builder_record("b-1", raw))

        assert resource.is_deletable == deletable
        assert resource.is_transitioning == transitioning

    def test_unknown_states(self):
        """Test that unrecognised provider states map to UNKNOWN."""
        assert BuildResourceState.from_provider("UPDATING") == BuildResourceState.UNKNOWN
        assert BuildResourceState.from_provider(None) == BuildResourceState.UNKNOWN
        assert BuildResourceState.from_provider("running") == BuildResourceState.RUNNING

        resource = BuildResource.from_description(builder_record("b-1", "PENDING_QUALIFICATION"))
        assert resource.provider_state == "PENDING_QUALIFICATION"
        assert resource.to_dict()["state"] == "UNKNOWN"


class TestImages:
    """Test cases for image models."""

    def test_image_ref_parse(self):
        ref = ImageRef.parse("eu-west-1:ami-0123")

        assert ref == ImageRef("eu-west-1", "ami-0123")
        assert str(ref) == "eu-west-1:ami-0123"

    @pytest.mark.parametrize("value", ["ami-0123", ":ami-0123", "eu-west-1:"])
    def test_image_ref_invalid(self, value):
        with pytest.raises(ValueError):
            ImageRef.parse(value)

    def test_parse_artifact_id(self):
        """Test parsing a comma separated artifact id."""
        refs = parse_artifact_id("us-east-1:ami-1, eu-west-1:ami-2,")

        assert refs == [ImageRef("us-east-1", "ami-1"), ImageRef("eu-west-1", "ami-2")]

    def test_source_image_from_description(self):
        image = SourceImage.from_description(
            ami_record("ami-1", state="pending", tags={"Team": "a"}, snapshot_ids=["snap-1"]),
            "us-east-1",
        )

        assert image.state == ImageState.PENDING
        assert image.tags == {"Team": "a"}
        assert image.snapshot_ids == ("snap-1",)
        assert image.ref == ImageRef("us-east-1", "ami-1")

    def test_built_image_reason(self):
        image = BuiltImage.from_description(appstream_image_record("img", "FAILED", reason="boom"))

        assert image.state == ImageState.FAILED
        assert image.state_reason == "boom"


class TestCopyTask:
    """Test cases for CopyTask and its outcomes."""

    def test_requires_account(self):
        with pytest.raises(ValueError):
            make_task(account_id="")

    def test_kms_key_requires_encryption(self):
        with pytest.raises(ValueError):
            make_task(kms_key_id="alias/images")

        assert make_task(kms_key_id="alias/images", encrypted=True).kms_key_id == "alias/images"

    def test_merged_tags_override_source(self):
        task = make_task(tags={"Name": "renamed", "Stage": "prod"})

        assert task.merged_tags() == {"Name": "renamed", "Stage": "prod"}
        # Source image is left untouched
        assert task.source_image.tags == {"Name": "golden"}

    def test_outcomes(self):
        task = make_task()
        succeeded = CopyOutcome.succeeded(task, "ami-2")
        failed = CopyOutcome.failed(task, RuntimeError("boom"))

        assert succeeded.success
        assert not failed.success
        assert isinstance(succeeded.finished_time, datetime)
        assert succeeded.to_manifest_entry().image_id == "ami-2"
        with pytest.raises(ValueError):
            failed.to_manifest_entry()

    def test_result_aggregates_failures(self):
        task = make_task()
        result = ReplicationResult(outcomes=[
            CopyOutcome.succeeded(task, "ami-2"),
            CopyOutcome.failed(make_task("333333333333"), RuntimeError("boom")),
        ])

        assert result.total == 2
        assert [entry.image_id for entry in result.manifest] == ["ami-2"]
        assert isinstance(result.error, ReplicationError)
        assert result.error.failed_targets == ["333333333333/us-east-1"]


class TestWorkflowResult:
    """Test cases for workflow results."""

    def test_phase_lifecycle(self):
        result = WorkflowResult()
        result.mark_started()

        phase = result.start_phase(WorkflowPhase.BUILD)
        assert phase.status == PhaseStatus.RUNNING
        phase.mark_completed({"image_builder": "b-1"})
        result.skip_phase(WorkflowPhase.CAPTURE, "skip_create_image is set")
        result.mark_completed()

        summary = result.get_summary()
        assert summary["status"] == "completed"
        assert summary["phases"] == {"build": "completed", "capture": "skipped"}
        assert result.is_successful
        assert phase.duration is not None

    def test_partial(self):
        result = WorkflowResult()
        result.mark_partial("1/2 image copies failed")

        assert result.status == WorkflowStatus.PARTIAL_SUCCESS
        assert not result.is_successful
        assert result.errors == ["1/2 image copies failed"]


if __name__ == "__main__":
    pytest.main([__file__])
