"""
Utility modules: logging, configuration, command execution, network
primitives and the concurrency coordinator.

Import submodules directly (``from dodiag.utils.system import ...``);
service_check depends on the diagnostics model and is not re-exported
here.
"""
