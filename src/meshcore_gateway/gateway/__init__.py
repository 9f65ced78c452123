from .ai_gate import AiGateClient, AiGateError
from .bot import BotActionError, BotDispatch
from .config import AiGateConfig, GatewayConfig, load_ai_config, load_config
from .connection import DeviceCommandError, MeshcoreConnection
from .control import ActionError, ControlActions, ControlServer
from .normalizer import EventNormalizer
from .peer_directory import PeerDirectory
from .pipeline import IngestionPipeline
from .record_store import RecordStore
from .service import Gateway, create_connection
from .supervisor import ConnectionSupervisor

__all__ = [
    "AiGateClient",
    "AiGateConfig",
    "AiGateError",
    "ActionError",
    "BotActionError",
    "BotDispatch",
    "ConnectionSupervisor",
    "ControlActions",
    "ControlServer",
    "DeviceCommandError",
    "EventNormalizer",
    "Gateway",
    "GatewayConfig",
    "IngestionPipeline",
    "MeshcoreConnection",
    "PeerDirectory",
    "RecordStore",
    "create_connection",
    "load_ai_config",
    "load_config",
]
