"""Runtime adapters for the embedded broker.

Each adapter module can be imported independently:

- embedded_rabbitmq.adapters.protocol: ProcessExecutor / ProcessHandle contracts
- embedded_rabbitmq.adapters.process: subprocess-backed executor
- embedded_rabbitmq.adapters.repository: artifact URL resolution
- embedded_rabbitmq.adapters.download: artifact download and cache
- embedded_rabbitmq.adapters.extract: archive extraction
- embedded_rabbitmq.adapters.commands: rabbitmq-server / rabbitmqctl / rabbitmq-plugins
- embedded_rabbitmq.adapters.erlang: Erlang runtime pre-flight check
"""

from embedded_rabbitmq.adapters import protocol
from embedded_rabbitmq.adapters.protocol import (
    ProcessExecutor,
    ProcessExecutorFactory,
    ProcessHandle,
)

__all__ = [
    "protocol",
    "ProcessExecutor",
    "ProcessExecutorFactory",
    "ProcessHandle",
]
