"""ClipFade: crossfade merging and audio transcoding on top of ffmpeg."""

from clipfade.engine import merge_with_transitions, probe_metadata

__version__ = "0.1.0"

__all__ = ["merge_with_transitions", "probe_metadata", "__version__"]
