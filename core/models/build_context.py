"""Typed context threaded through the build stages."""

from dataclasses import dataclass
from typing import Optional

from core.models.build_resource import BuildResource
from core.models.config import BuilderConfig
from core.models.image import BuiltImage


@dataclass
class BuildContext:
    """State shared by the build stages.

    ``create`` writes ``resource``; ``await_ready`` refreshes ``resource`` and
    writes ``address``; ``capture_image`` writes ``image``. ``teardown`` only
    reads ``resource``.
    """

    config: BuilderConfig
    resource: Optional[BuildResource] = None
    address: Optional[str] = None
    image: Optional[BuiltImage] = None

    @property
    def created(self) -> bool:
        return self.resource is not None

    @property
    def resource_name(self) -> str:
        if self.resource is None:
            raise ValueError("Image builder has not been created")
        return self.resource.name
