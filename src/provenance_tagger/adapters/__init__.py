"""Adapters - control-plane integrations for the provenance tagger.

Contains:
- arm_gateway.py - Azure Resource Manager gateway (azure-mgmt-resource)
- in_memory.py   - dict-backed gateway for local runs and tests
"""

from provenance_tagger.adapters.arm_gateway import ArmTagGateway
from provenance_tagger.adapters.in_memory import InMemoryTagGateway

__all__ = ["ArmTagGateway", "InMemoryTagGateway"]
