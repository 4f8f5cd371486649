from scm_bridge.base import Scm
from scm_bridge.bitbucket import BitbucketScm
from scm_bridge.config import Config

__all__ = ["Scm", "BitbucketScm", "Config"]
