"""
tests/unit/test_venue_code_parity.py - Engine/receiver venue code parity.

The receiver dispatches swaps on the uint8 venue code in the params
tuple. A mismatch between core/constants.py and the contract interface
would route a swap to the wrong router type.
"""

import re
from pathlib import Path

import pytest

from chains.abi import FLASH_RECEIVER_REQUEST_FLASH_LOAN
from core.constants import VenueType

CONTRACT = Path(__file__).resolve().parents[2] / "contracts" / "IArbFlashReceiver.sol"

CONSTANT_RE = re.compile(r"uint8\s+constant\s+(DEX_\w+)\s*=\s*(\d+)\s*;")
FUNCTION_RE = re.compile(r"function\s+(\w+)\s*\(([^)]*)\)")

SOLIDITY_TO_VENUE = {
    "DEX_UNISWAP_V3": VenueType.UNISWAP_V3,
    "DEX_CAMELOT_V3": VenueType.ALGEBRA,
    "DEX_BALANCER": VenueType.BALANCER,
}


@pytest.fixture(scope="module")
def source() -> str:
    return CONTRACT.read_text(encoding="utf-8")


class TestVenueCodeParity:

    def test_every_contract_code_matches(self, source):
        codes = {name: int(value) for name, value in CONSTANT_RE.findall(source)}
        assert set(codes) == set(SOLIDITY_TO_VENUE)
        for name, value in codes.items():
            assert value == int(SOLIDITY_TO_VENUE[name]), name

    def test_every_venue_type_has_contract_code(self, source):
        codes = {int(value) for _, value in CONSTANT_RE.findall(source)}
        assert {int(v) for v in VenueType} == codes


class TestEntryPointParity:

    def test_request_flash_loan_signature(self, source):
        functions = dict(FUNCTION_RE.findall(source))
        assert FLASH_RECEIVER_REQUEST_FLASH_LOAN.name in functions

        params = functions[FLASH_RECEIVER_REQUEST_FLASH_LOAN.name]
        # "bytes calldata params" -> "bytes"
        types = tuple(p.split()[0] for p in params.split(","))
        assert types == FLASH_RECEIVER_REQUEST_FLASH_LOAN.inputs
