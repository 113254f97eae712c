from __future__ import annotations

import re

from .value_types import EventType


def _types(*names: str) -> tuple[EventType, ...]:
    return tuple(EventType(n) for n in names)


V1_EVENTS = _types(
    "CrcV1_HubTransfer",
    "CrcV1_Transfer",
    "CrcV1_Trust",
    "CrcV1_OrganizationSignup",
    "CrcV1_Signup",
    "CrcV1_TransferSummary",
    "CrcV1_UpdateMetadataDigest",
)

BASE_GROUP_EVENTS = _types(
    "CrcV2_BaseGroupCreated",
    "CrcV2_BaseGroupOwnerUpdated",
    "CrcV2_BaseGroupServiceUpdated",
    "CrcV2_BaseGroupFeeCollectionUpdated",
)

V2_EVENTS = _types(
    "CrcV2_ApprovalForAll",
    "CrcV2_CidV0",
    "CrcV2_CreateVault",
    "CrcV2_DepositDemurraged",
    "CrcV2_DepositInflationary",
    "CrcV2_ERC20WrapperDeployed",
    "CrcV2_Erc20WrapperTransfer",
    "CrcV2_GroupRedeem",
    "CrcV2_GroupRedeemCollateralBurn",
    "CrcV2_GroupRedeemCollateralReturn",
    "CrcV2_PersonalMint",
    "CrcV2_RegisterGroup",
    "CrcV2_RegisterHuman",
    "CrcV2_RegisterOrganization",
    "CrcV2_RegisterShortName",
    "CrcV2_Stopped",
    "CrcV2_StreamCompleted",
    "CrcV2_TransferBatch",
    "CrcV2_TransferSingle",
    "CrcV2_Trust",
    "CrcV2_UpdateMetadataDigest",
    "CrcV2_URI",
    "CrcV2_WithdrawDemurraged",
    "CrcV2_WithdrawInflationary",
    "CrcV2_InviteHuman",
    "CrcV2_DiscountCost",
    "CrcV2_CollateralLockedSingle",
    "CrcV2_CollateralLockedBatch",
    "CrcV2_TransferSummary",
    "CrcV2_FlowEdgesScopeLastEnded",
    "CrcV2_FlowEdgesScopeSingleStarted",
) + BASE_GROUP_EVENTS

SAFE_EVENTS = _types(
    "Safe_AddedOwner",
    "Safe_ProxyCreation",
    "Safe_RemovedOwner",
    "Safe_SafeSetup",
)

UNKNOWN_EVENTS = _types("Crc_UnknownEvent")

ALL_EVENTS: tuple[EventType, ...] = V1_EVENTS + V2_EVENTS + SAFE_EVENTS + UNKNOWN_EVENTS

# summary rows fold the other events of their transaction underneath them
SUMMARY_EVENTS = frozenset(_types("CrcV1_TransferSummary", "CrcV2_TransferSummary"))

# ---------- labels ------------------------------------------------------------

_LABEL_OVERRIDES = {
    "CrcV2_Erc20WrapperTransfer": "ERC20 Wrapper Transfer",
    "Safe_SafeSetup": "Safe Setup",
}
_PREFIX_RE = re.compile(r"^(CrcV1_|CrcV2_|Crc_)")
_WORD_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def label_for(event_type: str) -> str:
    """Human label, e.g. CrcV2_RegisterHuman -> 'Register Human'."""
    if event_type in _LABEL_OVERRIDES:
        return _LABEL_OVERRIDES[event_type]
    name = _PREFIX_RE.sub("", event_type).replace("_", " ")
    return _WORD_RE.sub(" ", name)
