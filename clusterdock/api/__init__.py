"""Data model and external-interface contracts."""

from .model import CandidateNode as CandidateNode
from .model import ClusterMetadata as ClusterMetadata
from .model import CommitAck as CommitAck
from .model import Credential as Credential
from .model import NodeArchitecture as NodeArchitecture
from .model import NodeName as NodeName
from .model import NodeStatus as NodeStatus
from .model import ResourceUtilization as ResourceUtilization
from .model import RuntimeMetadata as RuntimeMetadata
from .model import Stage as Stage
from .model import VerificationResult as VerificationResult
from .model import VerificationStatus as VerificationStatus
from .protocols import ConnectivityValidator as ConnectivityValidator
from .protocols import NodeDiscovery as NodeDiscovery
from .protocols import NodeInventory as NodeInventory
from .protocols import NodeVerifier as NodeVerifier
