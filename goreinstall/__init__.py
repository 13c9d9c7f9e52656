"""
goreinstall - Rebuild Go binaries against a newer compiler or module version.

Core Modules:
- Extraction: Go build info from ELF, Mach-O, PE and XCOFF binaries
- Policy: Compiler and module version comparison
- Execution: Bounded-concurrency batches of go install with cancellation
- Foundation: Go environment, config, logging
"""

__version__ = "1.0.0"

VERSION = __version__

# Extraction
from .buildinfo import BuildRecord, ModuleRef, list_build_info, normalize_go_version, read_build_info

# Policy
from .policy import Decision, compare_go_versions, compare_module_versions, decide_reinstall, decide_update

# Module references
from .modules import LATEST, check_path, check_version, escape_path, escape_version

# Execution
from .batch import (
    MODE_REINSTALL,
    MODE_UPDATE,
    BatchRequest,
    ReinstallStrategy,
    UpdateStrategy,
    execute_batch,
    process_binary,
)
from .cancellation import CancellableReader, CancellationToken
from .invoker import build_install_command, install_module
from .proxy import get_latest_version
from .runner import ActionOutcome, BatchResult, OutcomeCollector, run_batch

# Foundation
from .config import Config, Preferences, load_config
from .environment import GoEnv, find_binaries, get_go_env
from .errors import (
    AggregateError,
    Cancelled,
    DeadlineExceeded,
    ExternalToolFailure,
    GoEnvError,
    GoReinstallError,
    InvalidModuleReference,
    LookupFailure,
    MalformedArtifact,
    NoGoBinOrPath,
    NotReadable,
)
from .logging_config import get_logger, setup_logging

__all__ = [
    "__version__",
    "VERSION",
    # Extraction
    "BuildRecord",
    "ModuleRef",
    "list_build_info",
    "normalize_go_version",
    "read_build_info",
    # Policy
    "Decision",
    "compare_go_versions",
    "compare_module_versions",
    "decide_reinstall",
    "decide_update",
    # Module references
    "LATEST",
    "check_path",
    "check_version",
    "escape_path",
    "escape_version",
    # Execution
    "MODE_REINSTALL",
    "MODE_UPDATE",
    "BatchRequest",
    "ReinstallStrategy",
    "UpdateStrategy",
    "execute_batch",
    "process_binary",
    "CancellableReader",
    "CancellationToken",
    "build_install_command",
    "install_module",
    "get_latest_version",
    "ActionOutcome",
    "BatchResult",
    "OutcomeCollector",
    "run_batch",
    # Foundation
    "Config",
    "Preferences",
    "load_config",
    "GoEnv",
    "find_binaries",
    "get_go_env",
    "AggregateError",
    "Cancelled",
    "DeadlineExceeded",
    "ExternalToolFailure",
    "GoEnvError",
    "GoReinstallError",
    "InvalidModuleReference",
    "LookupFailure",
    "MalformedArtifact",
    "NoGoBinOrPath",
    "NotReadable",
    "get_logger",
    "setup_logging",
]
