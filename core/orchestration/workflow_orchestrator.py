import asyncio
import logging
from typing import List, Optional

from core.exceptions import ConfigurationError, PollTimeoutError
from core.interfaces.cloud_client_interface import ICloudClientFactory
from core.interfaces.command_interface import IRemoteCommandRunner
from core.interfaces.manifest_interface import IManifestWriter
from core.interfaces.progress_interface import IProgressReporter
from core.interfaces.workflow_interface import IWorkflowOrchestrator
from core.models.build_context import BuildContext
from core.models.config import ReplicationConfig, WorkflowConfig
from core.models.image import ImageRef
from core.models.replication import CopyOptions, CopyOutcome, CopyTask, ReplicationResult
from core.models.workflow import PhaseResult, PhaseStatus, WorkflowPhase, WorkflowResult
from core.services.image_builder_lifecycle import ImageBuilderLifecycle
from core.services.image_deletion_service import ImageDeletionService
from core.services.image_share_service import ImageShareService
from core.services.poller import Sleep
from core.services.replication_engine import ReplicationEngine
from core.utils.duration import duration_or_default
from core.utils.images import locate_single_image
from core.utils.progress import LoggingProgressReporter


def artifact_id(result: ReplicationResult) -> str:
    """Comma separated ``region:image-id`` list of successful copies."""
    return ",".join(
        f"{outcome.target_region}:{outcome.image_id}" for outcome in result.successes
    )


class WorkflowOrchestrator(IWorkflowOrchestrator):
    """Workflow orchestrator for image build, replication, sharing and deletion."""

    def __init__(
        self,
        clients: ICloudClientFactory,
        progress: Optional[IProgressReporter] = None,
        manifest_writer: Optional[IManifestWriter] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.clients = clients
        self.progress = progress or LoggingProgressReporter()
        self.manifest_writer = manifest_writer
        self._sleep = sleep
        self.logger = logging.getLogger(__name__)

    def _handle_error(self, message: str, error: Exception) -> str:
        """Centralized error handling."""
        error_msg = f"{message}: {str(error)}"
        self.logger.error(error_msg)
        return error_msg

    def _fail_running_phases(self, result: WorkflowResult, error: Exception) -> None:
        for phase_result in result.phase_results.values():
            if phase_result.status == PhaseStatus.RUNNING:
                phase_result.mark_failed(str(error))

    async def run_build_workflow(
        self,
        config: WorkflowConfig,
        runner: Optional[IRemoteCommandRunner] = None,
    ) -> WorkflowResult:
        """Build an image; the image builder is torn down however the build ends."""
        if config.builder is None:
            raise ConfigurationError("A builder section is required to build an image")

        result = WorkflowResult(workflow_name=config.name)
        result.mark_started()
        self.logger.info(f"Starting build workflow: {config.builder.name}")

        lifecycle = ImageBuilderLifecycle(
            self.clients.image_builder_client(config.aws.region), self.progress, self._sleep
        )
        context = BuildContext(config=config.builder)

        try:
            build_phase = result.start_phase(WorkflowPhase.BUILD)
            await lifecycle.create(context)
            await lifecycle.await_ready(context)
            build_phase.mark_completed({
                "image_builder": context.resource_name,
                "address": context.address,
            })

            if config.builder.skip_create_image:
                result.skip_phase(WorkflowPhase.CAPTURE, "skip_create_image is set")
            else:
                capture_phase = result.start_phase(WorkflowPhase.CAPTURE)
                image = await lifecycle.capture_image(context, runner)
                capture_phase.mark_completed({"image_name": image.name, "image_arn": image.arn})

            result.mark_completed()

        except Exception as e:
            self._fail_running_phases(result, e)
            result.mark_failed(self._handle_error("Build workflow failed", e))
            raise

        finally:
            teardown_phase = result.start_phase(WorkflowPhase.TEARDOWN)
            await lifecycle.teardown(context)
            teardown_phase.mark_completed()

        self.logger.info(f"Build workflow completed: {result.workflow_id}")
        return result

    async def run_replication_workflow(
        self,
        config: WorkflowConfig,
        images: List[ImageRef],
    ) -> WorkflowResult:
        """Replicate each source image; partial failures do not raise."""
        replication = config.replication
        if replication is None:
            raise ConfigurationError("A replication section is required to copy images")

        result = WorkflowResult(workflow_name=config.name)
        result.mark_started()
        phase = result.start_phase(WorkflowPhase.REPLICATE)

        engine = ReplicationEngine(self.progress, self.manifest_writer, self._sleep)
        options = CopyOptions(
            encrypted=replication.encrypt_boot,
            kms_key_id=replication.kms_key_id,
            tags_only=replication.tags_only,
            ensure_available=replication.ensure_available,
            tags=dict(replication.tags),
        )

        # Outcomes of finished copies, kept if the run fails or times out
        collected: List[CopyOutcome] = []

        async def replicate_all() -> ReplicationResult:
            sources = []
            for ref in images:
                source_client = self.clients.image_client(ref.region)
                source_image = await locate_single_image(source_client, ref.image_id, ref.region)
                sources.append((source_image, source_client))

            tasks: List[CopyTask] = []
            unprepared: List[CopyOutcome] = []
            for source_image, source_client in sources:
                prepared, failed = await engine.prepare_tasks(
                    source_image,
                    source_client,
                    self.clients.replication_targets(replication, source_image.region),
                    options,
                )
                tasks.extend(prepared)
                unprepared.extend(failed)

            collected.extend(unprepared)
            return await engine.replicate(
                tasks,
                concurrency=replication.copy_concurrency,
                unprepared=unprepared,
                completed=collected,
            )

        timeout = duration_or_default(replication.timeout, None)
        try:
            if timeout:
                try:
                    combined = await asyncio.wait_for(replicate_all(), timeout=timeout.total_seconds())
                except asyncio.TimeoutError as e:
                    raise PollTimeoutError(
                        f"Replication timed out after {timeout}, copies may still be in progress"
                    ) from e
            else:
                combined = await replicate_all()
        except Exception as e:
            partial = ReplicationResult(outcomes=list(collected))
            if partial.successes:
                self._write_manifest(engine, replication, result, partial)
            phase.record_items(partial.total, len(partial.successes), len(partial.failures))
            phase.results["artifact_id"] = artifact_id(partial)
            phase.mark_failed(str(e))
            result.mark_failed(self._handle_error("Replication workflow failed", e))
            raise

        self._write_manifest(engine, replication, result, combined)
        self._record_replication(result, phase, combined)
        return result

    def _write_manifest(
        self,
        engine: ReplicationEngine,
        replication: ReplicationConfig,
        result: WorkflowResult,
        replicated: ReplicationResult,
    ) -> None:
        if not replication.manifest_output:
            return
        if engine.write_manifest(replicated, replication.manifest_output):
            result.output_files.append(replication.manifest_output)

    def _record_replication(
        self, result: WorkflowResult, phase: PhaseResult, replication: ReplicationResult
    ) -> None:
        phase.record_items(replication.total, len(replication.successes), len(replication.failures))

        results = {"artifact_id": artifact_id(replication)}
        error = replication.error
        if error is None:
            phase.mark_completed(results)
            result.mark_completed()
            self.logger.info(f"Replication completed: {results['artifact_id']}")
            return

        phase.results.update(results)
        phase.mark_failed(str(error))
        for outcome in replication.failures:
            result.add_error(f"{outcome.target_label}: {str(outcome.error)}")
        if replication.successes:
            result.mark_partial(str(error))
        else:
            result.mark_failed(str(error))

    async def run_share_workflow(self, config: WorkflowConfig) -> WorkflowResult:
        share = config.share
        if share is None:
            raise ConfigurationError("A share section is required to share an image")

        result = WorkflowResult(workflow_name=config.name)
        result.mark_started()
        phase = result.start_phase(WorkflowPhase.SHARE)

        service = ImageShareService(
            self.clients.image_builder_client(config.aws.region), self.progress, self._sleep
        )
        try:
            regions = await service.share(
                share.image_name,
                share.account_ids,
                share.destination_regions,
                share.timeout,
            )
        except Exception as e:
            phase.mark_failed(str(e))
            result.mark_failed(self._handle_error("Share workflow failed", e))
            raise

        phase.record_items(len(regions), len(regions))
        phase.mark_completed({"image_name": share.image_name, "regions": regions})
        result.mark_completed()
        return result

    async def run_delete_workflow(
        self,
        config: WorkflowConfig,
        images: List[ImageRef],
    ) -> WorkflowResult:
        result = WorkflowResult(workflow_name=config.name)
        result.mark_started()
        phase = result.start_phase(WorkflowPhase.DELETE)

        service = ImageDeletionService(self.clients.image_client, self.progress)
        try:
            deleted = await service.delete_images(images)
        except Exception as e:
            phase.mark_failed(str(e))
            result.mark_failed(self._handle_error("Delete workflow failed", e))
            raise

        phase.record_items(len(images), len(deleted))
        phase.mark_completed({"deleted": [str(image.ref) for image in deleted]})
        result.mark_completed()
        return result
