import pytest

from neutrino import filtercontrol
from neutrino.chain import MAINNET, SIMNET, TESTNET3, FilterType, hash_from_str
from neutrino.errors import CheckpointMismatchError
from neutrino.filtercontrol import control_cf_header


def test_control_cf_header_with_custom_checkpoint(monkeypatch):
    height = 999
    header = hash_from_str(
        "4a242283a406a7c089f671bb8df7671e5d5e9ba577cea1047d30a7f4919df193"
    )
    monkeypatch.setitem(
        filtercontrol.FILTER_HEADER_CHECKPOINTS, MAINNET.net, {height: header}
    )

    assert control_cf_header(MAINNET, FilterType.REGULAR, height, header) is True

    bad_header = hash_from_str(
        "000000000006a7c089f671bb8df7671e5d5e9ba577cea1047d30a7f4919df193"
    )
    with pytest.raises(CheckpointMismatchError):
        control_cf_header(MAINNET, FilterType.REGULAR, height, bad_header)

    assert control_cf_header(MAINNET, FilterType.REGULAR, 99, bad_header) is False


def test_mainnet_checkpoint_matches():
    header = hash_from_str(
        "f28cbc1ab369eb01b7b5fe8bf59763abb73a31471fe404a26a06be4153aa7fa5"
    )
    assert control_cf_header(MAINNET, FilterType.REGULAR, 100000, header) is True


def test_testnet_checkpoint_matches():
    header = hash_from_str(
        "96a31467f9edcaa3297770bc6cdf66926d5d17dfad70cb0cac285bfe9075c494"
    )
    assert control_cf_header(TESTNET3, FilterType.REGULAR, 1900000, header) is True


def test_mainnet_checkpoint_mismatch():
    wrong = hash_from_str(
        "e5031471732f4fbfe7a25f6a03acc1413300d5c56ae8e06b95046b8e4c0f32b3"
    )
    with pytest.raises(CheckpointMismatchError, match="checkpoint doesn't match"):
        control_cf_header(MAINNET, FilterType.REGULAR, 100000, wrong)


def test_network_without_checkpoints():
    header = bytes(32)
    assert control_cf_header(SIMNET, FilterType.REGULAR, 100000, header) is False


def test_unsupported_filter_type():
    with pytest.raises(ValueError, match="unsupported filter type 1"):
        control_cf_header(MAINNET, 1, 100000, bytes(32))