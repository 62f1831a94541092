import logging

import pytest

from e1line.defs import (
    NOTICE,
    Driver,
    LogCategory,
    get_logger,
    intf_prefix,
    line_prefix,
    ts_prefix,
)


def test_prefixes():
    assert intf_prefix(3) == "(I3)"
    assert line_prefix(3, 1) == "(I3:L1)"
    assert ts_prefix(3, 1, 7) == "(I3:L1:T7)"


def test_driver_labels():
    labels = ["usb", "vpair", "dahdi-trunkdev"]
    assert [Driver.from_label(label) for label in labels] == list(Driver)
    assert Driver.from_label("dahdi-trunkdev") is Driver.DAHDI_TRUNKDEV


def test_driver_label_round_trip():
    for driver in Driver:
        assert Driver.from_label(driver.label) is driver


def test_driver_unknown_label():
    with pytest.raises(ValueError):
        Driver.from_label("serial")


def test_logger_default_levels():
    assert get_logger(LogCategory.DE1D).level == logging.INFO
    assert get_logger(LogCategory.DXFR).level == NOTICE
    assert get_logger(LogCategory.DTRUNKDEV).level == NOTICE


def test_logger_identity_and_name():
    logger = get_logger(LogCategory.DTRUNKDEV)
    assert logger is get_logger(LogCategory.DTRUNKDEV)
    assert logger.name.endswith("DTRUNKDEV")


def test_logger_keeps_configured_level():
    logger = get_logger(LogCategory.DXFR)
    logger.setLevel(logging.DEBUG)
    try:
        assert get_logger(LogCategory.DXFR).level == logging.DEBUG
    finally:
        logger.setLevel(logging.NOTSET)


@pytest.mark.parametrize(
    "category, description",
    [
        (LogCategory.DTRUNKDEV, "DAHDI trunkdev driver"),
        (LogCategory.DE1D, "DE1D"),
    ],
)
def test_category_description(category, description):
    logger = get_logger(category)
    assert logger.name.endswith(category.name)
    assert category.description == description


def test_notice_level_name():
    logger = get_logger(LogCategory.DXFR)
    assert logging.getLevelName(logger.level) == "NOTICE"