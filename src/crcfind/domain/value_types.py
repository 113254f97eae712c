from __future__ import annotations
from typing import NewType, Literal

Address   = NewType("Address", str)    # 0x-prefixed, 40 hex chars
TxHash    = NewType("TxHash", str)     # 0x-prefixed, 64 hex chars
EventType = NewType("EventType", str)  # e.g. "CrcV2_Trust"
EventKey  = NewType("EventKey", str)   # "<transactionHash>-<logIndex>"
SearchMode = Literal["browse", "address", "transaction", "block"]
Role = Literal["sender", "receiver", "intermediate"]
