import pytest

from lost_in_transit.rules.lost_status import is_lost_status


@pytest.mark.parametrize(
    "text",
    [
        "Lost,CHICAGO,IL,US,60601",
        "lost, package",
        "We are unable to locate your package",
        "Your item cannot be located",
        "Missing Mail Search request initiated",
        "The package is lost",
        "Shipment DECLARED LOST by carrier",
        "Presumed lost in transit",
    ],
)
def test_lost_phrases_match(text):
    assert is_lost_status(text)


@pytest.mark.parametrize(
    "text",
    [
        None,
        "",
        "In transit to next facility",
        "Delivered, In/At Mailbox",
        "Arrived at Lost Creek, TX",  # "lost" only counts as the leading "Lost," status
        "Closed loss claim",
    ],
)
def test_non_lost_texts_do_not_match(text):
    assert not is_lost_status(text)
