from enum import Enum


class Capability(str, Enum):
    READ = "read"
    WRITE = "write"
    EXECUTE = "execute"
    NETWORK = "network"
    SYSTEM_MODIFICATION = "system_modification"


DANGEROUS_CAPABILITIES = frozenset(
    {
        Capability.WRITE,
        Capability.EXECUTE,
        Capability.SYSTEM_MODIFICATION,
    }
)


def requires_approval(capabilities: "frozenset[Capability] | set[Capability]") -> bool:
    return any(c in DANGEROUS_CAPABILITIES for c in capabilities)
