"""Plugin release pipeline for the chatops bridge."""

__version__ = "0.1.0"
from .commands import CommandAck, PluginReleaseCommand, PluginReleaseRequest
from .config import BridgeConfig, load_config
from .errors import ReleaseError, StageError, TagExistsError
from .pipeline import CutPluginContext, CutPluginResult, cut_plugin
from .secrets import register_resolver, register_secret, resolve_secret, resolve_secret_info, use_dotenv
from .tags import ReleaseTag, TagResult, create_tag

__all__ = [
    "__version__",
    "BridgeConfig",
    "CommandAck",
    "CutPluginContext",
    "CutPluginResult",
    "PluginReleaseCommand",
    "PluginReleaseRequest",
    "ReleaseError",
    "ReleaseTag",
    "StageError",
    "TagExistsError",
    "TagResult",
    "create_tag",
    "cut_plugin",
    "load_config",
    "register_resolver",
    "register_secret",
    "resolve_secret",
    "resolve_secret_info",
    "use_dotenv",
]
