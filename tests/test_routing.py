from __future__ import annotations

from app.bot import routing


def test_parse_callback_data_splits_main_action_params() -> None:
    route = routing.parse_callback_data("schedule:delete:execute_lesson:odd:sunday:2")

    assert route.main == "schedule"
    assert route.action == "delete"
    assert route.params == ("execute_lesson", "odd", "sunday", "2")
    assert route.param(3) == "2"
    assert route.param(9, "x") == "x"


def test_parse_callback_data_without_action() -> None:
    route = routing.parse_callback_data("cancel_action")

    assert route.main == "cancel_action"
    assert route.action == ""
    assert route.params == ()


def test_parse_callback_data_none() -> None:
    assert routing.parse_callback_data(None).main == ""


def test_build_callback_data() -> None:
    assert routing.build_callback_data("schedule:set:ask_details", "odd", "monday") == "schedule:set:ask_details:odd:monday"
    assert routing.build_callback_data("prefix", 3) == "prefix:3"


def test_normalize_command() -> None:
    assert routing.normalize_command("/Week@WeekStatusBot now") == "/week"
    assert routing.normalize_command("hello") == ""


def test_is_for_other_bot() -> None:
    assert routing.is_for_other_bot("/week@OtherBot", "WeekStatusBot")
    assert not routing.is_for_other_bot("/week@weekstatusbot", "WeekStatusBot")
    assert not routing.is_for_other_bot("/week", "WeekStatusBot")
