"""Topology planning for a transcoder run.

RTMP destinations expect one video and one audio elementary stream. The
planner picks the filter graph that guarantees both, whatever media the
operator supplied:

    both               [0:v]scale,pad,setsar[vout];[1:a]volume=1.0[aout]
    video_only         [0:v]scale,pad,setsar[vout]         + 0:a? passthrough
    video_with_stills  [0:v]scale,pad,setsar,fps[vout]     + anullsrc
    audio_only         color source                        + 0:a
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from stream_engine.config import EncodingConfig
from stream_engine.exceptions import PreconditionError
from stream_engine.models import MediaClass

logger = logging.getLogger(__name__)


class TopologyKind(str, Enum):
    """The four supported input/filter/output graph shapes."""

    BOTH = "both"
    VIDEO_ONLY = "video_only"
    VIDEO_WITH_STILLS = "video_with_stills"
    AUDIO_ONLY = "audio_only"


@dataclass
class Topology:
    """Input layout, filter graph and stream mapping for one run.

    Manifest inputs come first in ``manifest_inputs`` order, followed by the
    ``synthetic_inputs`` (lavfi sources); input indices in ``filter_complex``
    and ``maps`` follow that layout.
    """

    kind: TopologyKind
    manifest_inputs: List[MediaClass]
    synthetic_inputs: List[str] = field(default_factory=list)
    filter_complex: Optional[str] = None
    maps: List[str] = field(default_factory=list)


class TopologyPlanner:
    """Chooses a topology from which media classes are present."""

    def __init__(self, encoding: EncodingConfig):
        """Initialize planner.

        Args:
            encoding: Output encoding (target size and frame rate)
        """
        self.encoding = encoding

    def plan(self, has_video: bool, has_audio: bool, has_still_images: bool) -> Topology:
        """Plan the transcoder graph.

        Args:
            has_video: A video manifest is present
            has_audio: An audio manifest is present
            has_still_images: The video manifest contains still images

        Returns:
            Topology for the run

        Raises:
            PreconditionError: If neither media class is present
        """
        if has_video and has_audio:
            topology = Topology(
                kind=TopologyKind.BOTH,
                manifest_inputs=[MediaClass.VIDEO, MediaClass.AUDIO],
                filter_complex=(
                    f"{self._video_chain('0:v', force_fps=has_still_images)};"
                    f"[1:a]volume=1.0[aout]"
                ),
                maps=["[vout]", "[aout]"],
            )
        elif has_video and not has_still_images:
            topology = Topology(
                kind=TopologyKind.VIDEO_ONLY,
                manifest_inputs=[MediaClass.VIDEO],
                filter_complex=self._video_chain("0:v", force_fps=False),
                maps=["[vout]", "0:a?"],
            )
        elif has_video:
            topology = Topology(
                kind=TopologyKind.VIDEO_WITH_STILLS,
                manifest_inputs=[MediaClass.VIDEO],
                synthetic_inputs=[self._silence_source()],
                filter_complex=self._video_chain("0:v", force_fps=True),
                maps=["[vout]", "1:a"],
            )
        elif has_audio:
            topology = Topology(
                kind=TopologyKind.AUDIO_ONLY,
                manifest_inputs=[MediaClass.AUDIO],
                synthetic_inputs=[self._filler_video_source()],
                maps=["1:v", "0:a"],
            )
        else:
            raise PreconditionError("No media files found for this stream")

        logger.debug(f"Planned topology {topology.kind.value}: {topology.filter_complex}")
        return topology

    def _video_chain(self, input_name: str, force_fps: bool) -> str:
        """Scale into the target frame, letterboxed or pillarboxed and centred."""
        enc = self.encoding
        filters = [
            f"scale={enc.resolution}:force_original_aspect_ratio=decrease",
            f"pad={enc.resolution}:(ow-iw)/2:(oh-ih)/2",
            "setsar=1",
        ]
        # Stills have no intrinsic frame rate
        if force_fps:
            filters.append(f"fps={enc.framerate}")
        return f"[{input_name}]{','.join(filters)}[vout]"

    def _silence_source(self) -> str:
        return f"anullsrc=channel_layout=stereo:sample_rate={self.encoding.audio_sample_rate}"

    def _filler_video_source(self) -> str:
        enc = self.encoding
        return f"color=c=black:s={enc.frame_size}:r={enc.framerate}"
