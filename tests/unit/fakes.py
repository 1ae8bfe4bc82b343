"""In-memory fakes for provider clients, progress and sleeping."""

import asyncio
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from core.interfaces.cloud_client_interface import (
    ICloudClientFactory,
    IIdentityClient,
    IImageBuilderClient,
    IImageClient,
)
from core.interfaces.command_interface import IRemoteCommandRunner
from core.interfaces.manifest_interface import IManifestWriter
from core.interfaces.progress_interface import IProgressReporter
from core.models.image import tags_to_list
from core.models.replication import ReplicationTarget


def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, operation)


def builder_record(name: str, state: str, ip: Optional[str] = None) -> Dict[str, Any]:
    record = {
        "Name": name,
        "State": state,
        "Arn": f"arn:aws:appstream:us-east-1:111111111111:image-builder/{name}",
        "InstanceType": "stream.standard.medium",
    }
    if ip:
        record["NetworkAccessConfiguration"] = {"EniPrivateIpAddress": ip}
    return record


def appstream_image_record(name: str, state: str, reason: Optional[str] = None) -> Dict[str, Any]:
    record = {"Name": name, "State": state, "Arn": f"arn:aws:appstream:us-east-1::image/{name}"}
    if reason:
        record["StateChangeReason"] = {"Code": "INTERNAL_ERROR", "Message": reason}
    return record


def ami_record(
    image_id: str,
    state: str = "available",
    owner_id: str = "111111111111",
    tags: Optional[Dict[str, str]] = None,
    snapshot_ids: Optional[List[str]] = None,
) -> Dict[str, Any]:
    return {
        "ImageId": image_id,
        "OwnerId": owner_id,
        "Name": f"{image_id}-name",
        "Description": f"{image_id} description",
        "State": state,
        "Public": False,
        "Tags": tags_to_list(tags or {}),
        "BlockDeviceMappings": [
            {"DeviceName": f"/dev/sd{chr(97 + i)}", "Ebs": {"SnapshotId": snapshot_id}}
            for i, snapshot_id in enumerate(snapshot_ids or [])
        ],
    }


def _next(sequence: List[Any]) -> Any:
    """Pop the next scripted response, repeating the last one once exhausted."""
    item = sequence.pop(0) if len(sequence) > 1 else sequence[0]
    if isinstance(item, Exception):
        raise item
    return item


class RecordingProgress(IProgressReporter):
    def __init__(self):
        self.messages: List[str] = []
        self.errors: List[str] = []

    def say(self, message: str) -> None:
        self.messages.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


class RecordingSleep:
    """Awaitable no-op sleep that records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeImageBuilderClient(IImageBuilderClient):
    """Scripted image builder client.

    ``builders`` and ``images`` are response sequences; an item is a record,
    ``None`` for an empty listing, or an exception to raise.
    """

    def __init__(self, builders=None, images=None, region: str = "us-east-1"):
        self.region = region
        self.builders = list(builders or [None])
        self.images = list(images or [None])
        self.calls: List[tuple] = []
        self.create_error: Optional[Exception] = None
        self.stop_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None
        self.regional: Dict[str, "FakeImageBuilderClient"] = {}

    def count(self, method: str) -> int:
        return len([call for call in self.calls if call[0] == method])

    async def create_image_builder(self, **params: Any) -> Dict[str, Any]:
        self.calls.append(("create_image_builder", params))
        if self.create_error:
            raise self.create_error
        return builder_record(params["Name"], "PENDING")

    async def describe_image_builders(self, names: List[str]) -> List[Dict[str, Any]]:
        self.calls.append(("describe_image_builders", names))
        record = _next(self.builders)
        return [record] if record else []

    async def stop_image_builder(self, name: str) -> Dict[str, Any]:
        self.calls.append(("stop_image_builder", name))
        if self.stop_error:
            raise self.stop_error
        return builder_record(name, "STOPPING")

    async def delete_image_builder(self, name: str) -> Dict[str, Any]:
        self.calls.append(("delete_image_builder", name))
        if self.delete_error:
            raise self.delete_error
        return builder_record(name, "DELETING")

    async def describe_images(self, names: List[str], visibility: Optional[str] = None) -> List[Dict[str, Any]]:
        self.calls.append(("describe_images", names, visibility))
        record = _next(self.images)
        return [record] if record else []

    async def update_image_permissions(self, name: str, account_id: str,
                                       allow_fleet: bool = True,
                                       allow_image_builder: bool = True) -> None:
        self.calls.append(("update_image_permissions", name, account_id, allow_fleet, allow_image_builder))

    async def copy_image(self, source_name: str, destination_name: str,
                         destination_region: str) -> str:
        self.calls.append(("copy_image", source_name, destination_name, destination_region))
        return destination_name

    def for_region(self, region: str) -> "FakeImageBuilderClient":
        if region not in self.regional:
            self.regional[region] = FakeImageBuilderClient(
                images=[appstream_image_record("copied", "AVAILABLE")], region=region
            )
        return self.regional[region]


class FakeImageClient(IImageClient):
    """In-memory EC2 image client.

    ``images`` maps image ids to describe records. Copies get sequential ids
    ``<prefix>-1``, ``<prefix>-2`` and so on.
    """

    def __init__(self, images: Optional[Dict[str, Dict[str, Any]]] = None,
                 copy_prefix: str = "ami-copy", copy_delay: float = 0):
        self.images = dict(images or {})
        self.copy_prefix = copy_prefix
        self.copy_delay = copy_delay
        self.calls: List[tuple] = []
        self.launch_permissions: Dict[str, List[Dict[str, str]]] = {}
        self.tag_errors: List[Exception] = []
        self.copy_error: Optional[Exception] = None
        self.snapshot_errors: Dict[str, Exception] = {}
        self.describe_states: List[Any] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._copies = 0

    def count(self, method: str) -> int:
        return len([call for call in self.calls if call[0] == method])

    async def describe_images(self, image_ids=None, owners=None, filters=None) -> List[Dict[str, Any]]:
        self.calls.append(("describe_images", image_ids, filters))
        wanted = list(image_ids or [])
        for image_filter in filters or []:
            if image_filter["Name"] == "image-id":
                wanted.extend(image_filter["Values"])

        if self.describe_states:
            state = _next(self.describe_states)
            if state is None:
                return []
            return [ami_record(image_id, state=state) for image_id in wanted]

        return [self.images[image_id] for image_id in wanted if image_id in self.images]

    async def copy_image(self, source_image_id: str, source_region: str, name: str,
                         description: str = "", encrypted: bool = False,
                         kms_key_id: Optional[str] = None) -> str:
        self.calls.append(("copy_image", source_image_id, source_region, name, encrypted, kms_key_id))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.copy_delay)
            if self.copy_error:
                raise self.copy_error
            self._copies += 1
            return f"{self.copy_prefix}-{self._copies}"
        finally:
            self.in_flight -= 1

    async def create_tags(self, resource_ids: List[str], tags: Dict[str, str]) -> None:
        self.calls.append(("create_tags", list(resource_ids), dict(tags)))
        if self.tag_errors:
            raise self.tag_errors.pop(0)

    async def describe_launch_permissions(self, image_id: str) -> List[Dict[str, Any]]:
        self.calls.append(("describe_launch_permissions", image_id))
        return list(self.launch_permissions.get(image_id, []))

    async def add_launch_permission(self, image_id: str, account_id: str) -> None:
        self.calls.append(("add_launch_permission", image_id, account_id))
        self.launch_permissions.setdefault(image_id, []).append({"UserId": account_id})

    async def add_create_volume_permission(self, snapshot_id: str, account_id: str) -> None:
        self.calls.append(("add_create_volume_permission", snapshot_id, account_id))
        if snapshot_id in self.snapshot_errors:
            raise self.snapshot_errors[snapshot_id]

    async def deregister_image(self, image_id: str) -> None:
        self.calls.append(("deregister_image", image_id))
        self.images.pop(image_id, None)

    async def delete_snapshot(self, snapshot_id: str) -> None:
        self.calls.append(("delete_snapshot", snapshot_id))


class SharedInFlightCounter:
    """Tracks concurrent copy calls across several fake clients."""

    def __init__(self):
        self.current = 0
        self.maximum = 0


class CountingImageClient(FakeImageClient):
    """Fake image client reporting in-flight copies to a shared counter."""

    def __init__(self, counter: SharedInFlightCounter, **kwargs):
        super().__init__(**kwargs)
        self.counter = counter

    async def copy_image(self, *args, **kwargs) -> str:
        self.counter.current += 1
        self.counter.maximum = max(self.counter.maximum, self.counter.current)
        try:
            return await super().copy_image(*args, **kwargs)
        finally:
            self.counter.current -= 1


class FakeIdentityClient(IIdentityClient):
    def __init__(self, account: str = "222222222222", error: Optional[Exception] = None):
        self.account = account
        self.error = error
        self.calls = 0

    async def get_caller_identity(self) -> Dict[str, Any]:
        self.calls += 1
        if self.error:
            raise self.error
        return {
            "account": self.account,
            "arn": f"arn:aws:iam::{self.account}:user/replicator",
            "user_id": "AIDAEXAMPLE",
        }


class FakeRunner(IRemoteCommandRunner):
    def __init__(self, exit_status: int = 0):
        self.exit_status = exit_status
        self.commands: List[tuple] = []

    async def run(self, address: str, command: str) -> int:
        self.commands.append((address, command))
        return self.exit_status


class MemoryManifestWriter(IManifestWriter):
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.written: Dict[str, list] = {}

    def write(self, path: str, entries) -> None:
        if self.error:
            raise self.error
        self.written[path] = list(entries)

    def read(self, path: str):
        return list(self.written[path])


def account_target(account_id: str, client: IImageClient, region: str = "us-east-1") -> ReplicationTarget:
    return ReplicationTarget(
        label=f"{account_id}/{region}",
        region=region,
        connect=lambda: (client, None),
        account_id=account_id,
    )


class FakeClientFactory(ICloudClientFactory):
    """Hands out preconfigured fakes by region."""

    def __init__(self, builder_client=None, image_clients=None, targets=None):
        self.builder_client = builder_client or FakeImageBuilderClient()
        self.image_clients = dict(image_clients or {})
        self.targets = list(targets or [])
        self.target_requests: List[tuple] = []

    def image_builder_client(self, region: str) -> IImageBuilderClient:
        return self.builder_client

    def image_client(self, region: str) -> IImageClient:
        return self.image_clients.setdefault(region, FakeImageClient())

    def replication_targets(self, config, source_region: str):
        self.target_requests.append((config, source_region))
        return list(self.targets)
