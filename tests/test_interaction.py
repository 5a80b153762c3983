import io

import pytest
from unittest.mock import patch
from rich.console import Console

from docagent.interaction import ConsolePrompter, UserCancelled

CHOICES = ("Accept and finalize", "Request changes", "Cancel")


@pytest.fixture
def prompter():
    return ConsolePrompter(Console(file=io.StringIO()))


@patch("docagent.interaction.Prompt.ask", return_value="2")
def test_select_maps_number_to_choice(mock_ask, prompter):
    assert prompter.select("What would you like to do?", CHOICES, "Accept and finalize") == "Request changes"
    assert mock_ask.call_args.kwargs["choices"] == ["1", "2", "3"]
    assert mock_ask.call_args.kwargs["default"] == "1"

@patch("docagent.interaction.Prompt.ask", side_effect=KeyboardInterrupt)
def test_select_interrupt_is_cancellation(mock_ask, prompter):
    with pytest.raises(UserCancelled):
        prompter.select("What would you like to do?", CHOICES, "Cancel")

@patch("docagent.interaction.Prompt.ask", return_value="  Add a troubleshooting section.  ")
def test_ask_text_strips(mock_ask, prompter):
    assert prompter.ask_text("What changes?") == "Add a troubleshooting section."

@patch("docagent.interaction.Prompt.ask", side_effect=EOFError)
def test_ask_text_end_of_input_is_cancellation(mock_ask, prompter):
    with pytest.raises(UserCancelled):
        prompter.ask_text("What changes?")
