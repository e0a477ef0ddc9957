from .config import FilterSpec, PushConfig
from .divergence import Divergence, SyncStatus, classify, check_divergence
from .exceptions import (
    FilterPushError, PreconditionError, ConfigError, LockedError,
    DivergedError, BehindError, TransportError, PushRejectedError,
)
from .filtered import FilteredTree, StagingTree, build_filtered_tree
from .publish import Publisher, PublishReport, PublishState, synthesize_public_commit
from .remote import PrivateRemote, PublicRemote

__all__ = [
    "FilterSpec", "PushConfig",
    "Divergence", "SyncStatus", "classify", "check_divergence",
    "FilterPushError", "PreconditionError", "ConfigError", "LockedError",
    "DivergedError", "BehindError", "TransportError", "PushRejectedError",
    "FilteredTree", "StagingTree", "build_filtered_tree",
    "Publisher", "PublishReport", "PublishState", "synthesize_public_commit",
    "PrivateRemote", "PublicRemote",
]
