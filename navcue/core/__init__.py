from .asyncio_utils import add_task_exception_logger, cancel_and_wait, create_logged_task
from .camera_state import CameraStateMachine, CaptureMode, ModeToken
from .config import (
    AdmissionSettings,
    BufferSettings,
    CaptureSettings,
    LoggingSettings,
    NavcueConfig,
    SelectorSettings,
    build_config,
    load_config,
    load_config_async,
    parse_config_lines,
)
from .logging_config import configure_from_settings, configure_logging
from .logging_utils import StructuredLogger, ensure_structured_logger, get_module_logger
from .observable import ObservableValue
from .task_registry import TaskRegistry

__all__ = [
    'AdmissionSettings',
    'BufferSettings',
    'CameraStateMachine',
    'CaptureMode',
    'CaptureSettings',
    'LoggingSettings',
    'ModeToken',
    'NavcueConfig',
    'ObservableValue',
    'SelectorSettings',
    'StructuredLogger',
    'TaskRegistry',
    'add_task_exception_logger',
    'build_config',
    'cancel_and_wait',
    'configure_from_settings',
    'configure_logging',
    'create_logged_task',
    'ensure_structured_logger',
    'get_module_logger',
    'load_config',
    'load_config_async',
    'parse_config_lines',
]
